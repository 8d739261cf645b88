from crm_signup.infra.http.base import JsonServiceClient
from crm_signup.infra.http.clients import DirectoryClients
from crm_signup.infra.http.credentials_client import HttpCredentialStore
from crm_signup.infra.http.tenant_client import HttpTenantDirectory
from crm_signup.infra.http.users_client import HttpUserDirectory

__all__ = [
    "JsonServiceClient",
    "DirectoryClients",
    "HttpTenantDirectory",
    "HttpUserDirectory",
    "HttpCredentialStore",
]
