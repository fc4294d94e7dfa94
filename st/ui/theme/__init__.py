"""Theme system: colors, sizes and stylesheet generation."""

THEMES = {
    "Midnight": {
        "bg": "#0f172a",
        "card": "#1e293b",
        "text": "#e2e8f0",
        "muted": "#94a3b8",
        "border": "#334155",
        "button": "#334155",
        "button_hover": "#475569",
        "button_text": "#e2e8f0",
        "error": "#f87171",
        "success": "#34d399",
    },
    "Daylight": {
        "bg": "#f7f9fc",
        "card": "#ffffff",
        "text": "#3c4450",
        "muted": "#6b7280",
        "border": "#dce3ed",
        "button": "#e7f0ff",
        "button_hover": "#d4e4ff",
        "button_text": "#133a62",
        "error": "#dc2626",
        "success": "#059669",
    },
}

SIZES = {
    "timer": 44,
    "label": 11,
    "heading": 14,
    "padding": 12,
}


def build_stylesheet(theme_name, accent):
    t = THEMES.get(theme_name, THEMES["Midnight"])
    return f"""
        QWidget {{ background-color: {t['bg']}; color: {t['text']}; font-size: {SIZES['label']}pt; }}
        QFrame#card {{ background-color: {t['card']}; border: 1px solid {t['border']}; border-radius: 12px; }}
        QFrame#card QLabel {{ background: transparent; }}
        QLabel#heading {{ font-size: {SIZES['heading']}pt; font-weight: bold; }}
        QLabel#muted {{ color: {t['muted']}; }}
        QLabel#timer {{ font-size: {SIZES['timer']}pt; font-weight: bold; color: {accent}; }}
        QLabel#message[kind="error"] {{ color: {t['error']}; }}
        QLabel#message[kind="success"] {{ color: {t['success']}; }}
        QPushButton {{ background-color: {t['button']}; color: {t['button_text']}; border: none;
                       border-radius: 8px; padding: 6px 14px; }}
        QPushButton:hover {{ background-color: {t['button_hover']}; }}
        QPushButton:disabled {{ color: {t['muted']}; }}
        QPushButton[active="true"] {{ border: 2px solid {accent}; }}
        QLineEdit, QDateEdit, QComboBox {{ background-color: {t['card']}; border: 1px solid {t['border']};
                                          border-radius: 6px; padding: 4px 8px; }}
        QListWidget {{ background-color: {t['card']}; border: 1px solid {t['border']}; border-radius: 8px; }}
    """


__all__ = ["THEMES", "SIZES", "build_stylesheet"]
