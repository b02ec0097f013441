class ReconcilerError(Exception):
    pass


class UnsupportedValidityUnitError(ReconcilerError):
    pass


class CoADisconnectError(ReconcilerError):
    pass


class WhatsAppNotConfiguredError(ReconcilerError):
    pass


class WhatsAppSendError(ReconcilerError):
    pass


class InvoiceGenerationError(ReconcilerError):
    pass
