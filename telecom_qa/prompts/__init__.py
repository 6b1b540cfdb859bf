"""提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取提示词文本。
模板中的 ``$answer`` 等占位符用 string.Template 替换，
以免与 JSON 示例中的花括号冲突。
"""

from pathlib import Path
from string import Template


PROMPTS_DIR = Path(__file__).resolve().parent

# 数据源对应的提问前缀；"local" 不走远程补全
DATA_SOURCE_PREFIXES = {
    "deepseek": "[使用DeepSeek API回答] ",
    "crawler": "[使用爬虫数据回答] ",
    "all": "[使用全部数据源融合回答] ",
}


def load_prompt(name: str, locale: str = "zh", **params: str) -> str:
    fname = PROMPTS_DIR / locale / f"{name}.md"
    text = fname.read_text(encoding="utf-8").strip()
    if params:
        text = Template(text).safe_substitute(**params)
    return text
