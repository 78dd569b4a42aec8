"""User-facing strings shown inside chat messages."""

DEFAULT_LANG = "en"

LOCALES = {
    "en": {
        "unauthorized": (
            "Unauthorized access, please enter the access code in the settings, "
            "or check your Ollama API key."
        ),
    },
    "cn": {
        "unauthorized": "访问密码不正确或为空，请在设置中输入正确的访问密码，或检查 Ollama API Key。",
    },
    "es": {
        "unauthorized": (
            "Acceso no autorizado, introduce el código de acceso en la configuración "
            "o revisa tu clave de API de Ollama."
        ),
    },
}


def get_text(key: str, lang: str = DEFAULT_LANG) -> str:
    """Localized string, falling back to English."""
    strings = LOCALES.get(lang) or LOCALES[DEFAULT_LANG]
    return strings.get(key) or LOCALES[DEFAULT_LANG][key]
