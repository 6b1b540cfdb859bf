"""助手回复的展示格式化。"""

from telecom_qa.formatting.text_formatter import Block, format_message, render_html

__all__ = ["Block", "format_message", "render_html"]
