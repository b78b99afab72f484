# rentals/exceptions.py


class RentalError(Exception):
    """Base class for every error raised by the rental engine."""


class InvalidOdometerReading(RentalError):
    pass


class InvalidAmount(RentalError):
    pass


class InvalidPrice(InvalidAmount):
    pass


class PricingUnavailable(RentalError):
    pass


class PreconditionNotMet(RentalError):
    """A transition or action is blocked; ``requirement`` names what is missing."""

    def __init__(self, requirement: str, message: str = ""):
        self.requirement = requirement
        super().__init__(message or f"Requirement not met: {requirement}")


class InvalidTransition(RentalError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move rental from {current} to {target}")


class UnauthorizedAction(RentalError):
    def __init__(self, action: str, role: str):
        self.action = action
        self.role = role
        super().__init__(f"Role '{role}' may not {action}")


class StaleWrite(RentalError):
    def __init__(self, rental_id):
        self.rental_id = rental_id
        super().__init__(f"Rental {rental_id} was changed by someone else; reload and retry")
