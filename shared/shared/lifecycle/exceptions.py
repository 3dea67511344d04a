class LifecycleException(Exception):
    pass


class InvalidTransitionException(LifecycleException):
    def __init__(self, current, requested, reason: str = ""):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        message = f'cannot move from "{self.current}" to "{self.requested}"'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidInputException(LifecycleException):
    pass


class QCNotApplicableException(LifecycleException):
    pass


class QCAlreadySubmittedException(LifecycleException):
    pass


class NotDisputedException(LifecycleException):
    pass
