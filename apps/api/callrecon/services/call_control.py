from twilio.twiml.voice_response import VoiceResponse

from callrecon.models.tenant import VoiceApplication


class CallControlError(Exception):
    """Raised when a voice application cannot produce call-control markup."""


class CallControlService:
    def render(self, application: VoiceApplication) -> str:
        """Return the application's stored markup exactly as stored."""
        document = application.cxml_definition
        if not isinstance(document, str) or not document.strip():
            raise CallControlError(f"Voice application {application.id} has no call-control document")
        return document

    @staticmethod
    def hangup_document() -> str:
        response = VoiceResponse()
        response.hangup()
        return str(response)
