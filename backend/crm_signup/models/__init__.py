from crm_signup.models.registration_attempt import RegistrationAttempt

__all__ = [
    "RegistrationAttempt",
]
