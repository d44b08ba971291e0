class NeuralEduError(Exception):
    code="error"; status=400
    def __init__(self, message:str=""):
        super().__init__(message or self.__class__.__name__); self.message=message or self.__class__.__name__

class ValidationError(NeuralEduError): code="validation"
class WeakPasswordError(ValidationError): code="weak_password"
class UploadRejectedError(ValidationError): code="upload_rejected"

class AuthError(NeuralEduError): code="auth"; status=401
class UserNotFoundError(AuthError): code="user_not_found"
class IncorrectPasswordError(AuthError): code="incorrect_password"
class UsernameTakenError(AuthError): code="username_taken"; status=409
class InvalidCredentialsError(AuthError): code="invalid_credentials"
class RoleError(AuthError): code="forbidden"; status=403
class UnknownSessionError(AuthError): code="unknown_session"; status=404

class StorageError(NeuralEduError): code="storage"; status=507
