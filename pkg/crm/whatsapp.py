"""WhatsApp click-to-chat links for a customer's phone number."""
import re
from urllib.parse import quote

DEFAULT_MESSAGES = [
    "سلام، وقت بخیر. از خیاطی مگزاز تماس میگیرم.",
    "یادآوری جهت پیگیری آموزش.",
    "آیا در استفاده از نرم افزار مشکلی دارید؟",
]


def whatsapp_phone(phone: str, country_code: str = "98") -> str:
    """Local number (0912...) -> international digits (98912...)."""
    digits = re.sub(r"[^0-9]", "", phone or "")
    if digits.startswith("0"):
        digits = digits[1:]
    return f"{country_code}{digits}"


def whatsapp_link(phone: str, message: str, country_code: str = "98") -> str:
    # Same escaping as JavaScript's encodeURIComponent
    text = quote(message, safe="!*'()")
    return f"https://wa.me/{whatsapp_phone(phone, country_code)}?text={text}"
