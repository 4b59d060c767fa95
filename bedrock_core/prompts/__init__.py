"""提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的 Markdown 模板，
模板中的 {transcript} / {source_code} 等占位符由调用方通过 render_prompt 替换。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompt(name: str, locale: str = "en") -> str:
    """根据名称和语言加载提示词模板文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def render_prompt(name: str, locale: str = "en", **values: str) -> str:
    """加载模板并替换占位符。只做字面替换，避免对话中的花括号被 str.format 误解析。"""

    text = load_prompt(name, locale)
    for key, value in values.items():
        text = text.replace("{" + key + "}", value)
    return text
