from martianpay.server.receiver import SUCCESS_BODY, WebhookReceiver, run

__all__ = ["SUCCESS_BODY", "WebhookReceiver", "run"]
