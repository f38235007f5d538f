from pydantic import BaseModel, ConfigDict


class IamportNotification(BaseModel):
    """Notification posted by I'mport when a payment changes state."""

    model_config = ConfigDict(extra="ignore")

    imp_uid: str
    merchant_uid: str
    status: str
