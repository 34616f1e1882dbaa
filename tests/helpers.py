import re


def sms_code(message: dict) -> str:
    return re.search(r"(\d{4,})", message["message"]).group(1)


def set_cookie_headers(response, name):
    return [h for h in response.headers.getlist("Set-Cookie") if h.startswith(f"{name}=")]