class ErrorCodes:
    """
    Closed set of failure codes carried by ``Err`` values.

    The HTTP layer maps these to status codes; nothing below it raises them.
    STORAGE_UNAVAILABLE is the only code callers may retry on.
    """

    USER_ALREADY_EXISTS = "UserAlreadyExists"
    USER_NOT_FOUND = "UserNotFound"
    INVALID_CREDENTIALS = "InvalidCredentials"
    TOKEN_NOT_FOUND = "TokenNotFound"
    TOKEN_EXPIRED = "TokenExpired"
    REUSE_DETECTED = "ReuseDetected"
    STORAGE_UNAVAILABLE = "StorageUnavailable"

    ALL = frozenset({
        USER_ALREADY_EXISTS,
        USER_NOT_FOUND,
        INVALID_CREDENTIALS,
        TOKEN_NOT_FOUND,
        TOKEN_EXPIRED,
        REUSE_DETECTED,
        STORAGE_UNAVAILABLE,
    })
