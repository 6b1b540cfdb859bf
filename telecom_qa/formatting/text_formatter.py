"""助手回复文本格式化。

把模型返回的松散结构文本转换为有序的展示块，纯函数、无状态：

1. 行内：成对的 ``**文本**`` 转为强调标记，不成对的保持原样；
2. 按 ``###`` 切分段落，去掉空白段；``###`` 同一行若是普通文字则作为段标题，
   若本身是编号、``-`` 或带冒号的行，则与该段其余行一样参与分类；
3. 每段按行切分，去掉空行；
4. 每行独立分类：数字加点开头为 section-title，``-`` 开头为 subsection，
   含冒号的按第一个冒号拆成 label/value，其余为 paragraph。
"""

import html
import re
from dataclasses import dataclass, field
from typing import List, Literal, Optional


BlockKind = Literal["section-title", "subsection", "labeled", "paragraph"]

SECTION_DELIMITER = "###"
EMPHASIS_OPEN = '<span class="bold-text">'
EMPHASIS_CLOSE = "</span>"

_EMPHASIS_RE = re.compile(r"\*\*(.*?)\*\*")
_NUMBERED_RE = re.compile(r"^\d+\.", re.ASCII)
_MARKUP_RE = re.compile(f"({re.escape(EMPHASIS_OPEN)}|{re.escape(EMPHASIS_CLOSE)})")


@dataclass(frozen=True)
class Block:
    """一个展示块。

    section-title / paragraph 使用 text，subsection 使用 label，
    labeled 同时使用 label 与 value。heading 是所在 ``###`` 段的标题，
    不参与相等比较。
    """

    kind: BlockKind
    text: str = ""
    label: str = ""
    value: str = ""
    heading: Optional[str] = field(default=None, compare=False)


def emphasize(line: str) -> str:
    return _EMPHASIS_RE.sub(lambda m: f"{EMPHASIS_OPEN}{m.group(1)}{EMPHASIS_CLOSE}", line)


def classify_line(line: str, heading: Optional[str] = None) -> Block:
    if _NUMBERED_RE.match(line):
        return Block(kind="section-title", text=line, heading=heading)
    if line.startswith("-"):
        return Block(kind="subsection", label=line[1:].strip(), heading=heading)
    if ":" in line:
        label, value = line.split(":", 1)
        return Block(kind="labeled", label=label.strip(), value=value.strip(), heading=heading)
    return Block(kind="paragraph", text=line, heading=heading)


def _split_sections(text: str) -> List[tuple[Optional[str], str]]:
    parts = text.split(SECTION_DELIMITER)
    sections: List[tuple[Optional[str], str]] = []
    for idx, part in enumerate(parts):
        if not part.strip():
            continue
        if idx == 0:
            # 第一个 ### 之前的前言没有标题
            sections.append((None, part))
            continue
        first, _, rest = part.partition("\n")
        first = first.strip()
        if not first or not rest.strip() or classify_line(first).kind != "paragraph":
            # 只有普通文字行才能作为标题，其余情况整段按普通行处理
            sections.append((None, part))
            continue
        sections.append((first, rest))
    return sections


def format_message(text: Optional[str]) -> List[Block]:
    if not text:
        return []
    text = "\n".join(emphasize(line) for line in text.split("\n"))
    blocks: List[Block] = []
    for heading, body in _split_sections(text):
        for raw in body.split("\n"):
            line = raw.strip()
            if line:
                blocks.append(classify_line(line, heading))
    return blocks


def _escape(text: str) -> str:
    """转义 HTML，只保留行内强调生成的标记。"""
    pieces = _MARKUP_RE.split(text)
    return "".join(p if p in (EMPHASIS_OPEN, EMPHASIS_CLOSE) else html.escape(p, quote=False) for p in pieces)


def render_html(blocks: List[Block]) -> str:
    """按旧版前端的样式把展示块渲染为 HTML 片段，文本内容先做转义。"""
    out: List[str] = []
    current_heading: Optional[str] = None
    for block in blocks:
        if block.heading and block.heading != current_heading:
            out.append(f"<h3>{_escape(block.heading)}</h3>")
        current_heading = block.heading
        if block.kind == "section-title":
            out.append(f'<p class="section-title">{_escape(block.text)}</p>')
        elif block.kind == "subsection":
            out.append(f'<p class="subsection">{EMPHASIS_OPEN}{_escape(block.label)}{EMPHASIS_CLOSE}</p>')
        elif block.kind == "labeled":
            out.append(f'<p><span class="subtitle">{_escape(block.label)}</span>: {_escape(block.value)}</p>')
        else:
            out.append(f"<p>{_escape(block.text)}</p>")
    return "".join(out)
