from app.models.user import User
from app.models.event import Event
from app.models.round import Round
from app.models.registration import Registration, RoundOutcome
from app.models.certificate import Certificate

__all__ = ["User", "Event", "Round", "Registration", "RoundOutcome", "Certificate"]
