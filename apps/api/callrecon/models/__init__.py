from callrecon.models.call_event import CallEvent
from callrecon.models.call_session import Base, CallSession
from callrecon.models.cdr_log import CdrLog
from callrecon.models.tenant import Tenant, VoiceApplication

__all__ = ["Base", "CallSession", "CallEvent", "CdrLog", "Tenant", "VoiceApplication"]
