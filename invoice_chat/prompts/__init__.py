"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取发票助手的 system prompt 文本，
用于构造会话的第一条 Message(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(locale: str = "en") -> str:
    """根据语言加载系统提示词文本，去掉首尾空白。"""

    fname = PROMPTS_DIR / locale / "invoice_assistant_system.md"
    return fname.read_text(encoding="utf-8").strip()
