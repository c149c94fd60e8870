from models import LayoutTemplate, ResolvedLayout
from errors import LayoutError

CUSTOM_TEMPLATE_ID = "custom"
DEFAULT_TEMPLATE_ID = "2-vertical"

LAYOUT_TEMPLATES: list[LayoutTemplate] = [
    LayoutTemplate(
        id="single-panel",
        name="整页冲击力",
        panel_count=1,
        description="Splash Page。用单张大图呈现宏大场景、关键动作或戏剧性开场。能瞬间抓住读者注意力，带来强烈视觉震撼。",
    ),
    LayoutTemplate(
        id="2-horizontal",
        name="并列对比",
        panel_count=2,
        description="并排展示两个画面，非常适合表现对话、因果关系（动作与反应），或同时发生的两个场景。创造一种平衡稳定的感觉。",
    ),
    LayoutTemplate(
        id="2-vertical",
        name="时间流逝",
        panel_count=2,
        description="上下排列的两个分镜引导读者视线向下，天然适合表现时间的先后顺序或一个动作的两个阶段。",
    ),
    LayoutTemplate(
        id="3-vertical",
        name="叙事节拍器",
        panel_count=3,
        description="经典的叙事节拍器。用它来分解一个连续动作 (A→B→C)，展示角色从“观察”到“思考”再到“反应”的心理过程，或通过层层递进的画面营造悬念。",
    ),
    LayoutTemplate(
        id="4-grid",
        name="叙事基石 (2x2)",
        panel_count=4,
        description="节奏稳定、信息量大。非常适合日式四格漫画，或在一个页面内紧凑地讲述一个包含“起承转合”的完整小故事。",
    ),
    LayoutTemplate(
        id="hero-top",
        name="建立场景",
        panel_count=3,
        description="顶部的大分镜先建立宏观场景或关键动作，下方的小分镜则用来展示细节、对话或后续发展。",
    ),
    LayoutTemplate(
        id="hero-left",
        name="聚焦主体",
        panel_count=3,
        description="左侧垂直的大分镜用来突出一个主要角色或关键物体，右侧的小分镜则展示与之相关的反应、对话或细节。",
    ),
    LayoutTemplate(
        id="hero-bottom",
        name="高潮揭示",
        panel_count=3,
        description="先用上方的小分镜进行铺垫和叙事，最后在底部用一个冲击力强的大分镜来揭示故事的高潮、结局或关键转折。",
    ),
    LayoutTemplate(
        id="top-plus-4-grid",
        name="场景+故事",
        panel_count=5,
        description="结合了“建场镜头”和“四宫格”的优点。先用顶部横幅展示环境，再用下方的四格紧凑地讲述一个多步骤的小故事。",
    ),
    LayoutTemplate(
        id="4-vertical-montage",
        name="快速蒙太奇",
        panel_count=4,
        description="四个狭长的分镜垂直排列，能创造出极快的阅读节奏。非常适合表现连续的动作序列、时间的快速流逝或一系列闪回画面。",
    ),
    LayoutTemplate(
        id="2-diagonal",
        name="注入能量",
        panel_count=2,
        description="倾斜的线条打破了画面的稳定感，能瞬间提升场景的动态感与紧张度。这是表现激烈打斗、角色内心失衡或制造戏剧性冲突的绝佳选择。",
    ),
    LayoutTemplate(
        id="inset-panel",
        name="画中画",
        panel_count=2,
        description="在一个大的主分镜中嵌套小分镜。小分镜常用于展示特写细节（如角色眼神）、内心想法（内心独白或回忆闪现），或同时展示两个不同维度的信息。",
    ),
    LayoutTemplate(
        id="borderless-3-montage",
        name="意识流/梦境",
        panel_count=3,
        description="分镜内容相互融合，没有清晰的边界。打破了传统画格的束缚，非常适合表现梦境、回忆、幻觉等抽象、非线性的场景。",
    ),
    LayoutTemplate(
        id="center-focus-5-panel",
        name="中心焦点",
        panel_count=5,
        description="巨大的中心分镜用来聚焦核心事件或角色，四个角落的小分镜则用来展示细节、反应或同时发生的多角度叙事。",
    ),
    LayoutTemplate(
        id=CUSTOM_TEMPLATE_ID,
        name="自由导演",
        panel_count=1,  # overridden by the row configuration
        description="完全自定义你的页面布局，通过增减行列来创造独特的叙事节奏。",
    ),
]

_TEMPLATES_BY_ID = {t.id: t for t in LAYOUT_TEMPLATES}


def get_template(template_id: str) -> LayoutTemplate:
    try:
        return _TEMPLATES_BY_ID[template_id]
    except KeyError:
        raise LayoutError(f"Unknown layout template: '{template_id}'", {"template_id": template_id})


def validate_rows(rows: list[int]) -> None:
    if not rows:
        raise LayoutError("A custom layout needs at least one row")
    for i, count in enumerate(rows):
        if count < 1:
            raise LayoutError(
                f"Row {i + 1} must have at least one panel",
                {"row": i + 1, "columns": count},
            )


def describe_custom(rows: list[int]) -> str:
    header = f"一个自定义布局，包含 {len(rows)} 行。"
    return header + " ".join(f"第 {i + 1} 行有 {count} 个分镜。" for i, count in enumerate(rows))


def resolve(template: LayoutTemplate, custom_rows: list[int] | None = None) -> ResolvedLayout:
    """
    Turn a selected template into a concrete panel count and the layout text
    embedded in the page prompt.

    Fixed templates pass through unchanged. The custom template derives both
    values from `custom_rows` (panels per row, top to bottom).
    """
    if template.id != CUSTOM_TEMPLATE_ID:
        return ResolvedLayout(
            template_id=template.id,
            panel_count=template.panel_count,
            description=template.description,
        )
    rows = list(custom_rows or [])
    validate_rows(rows)
    return ResolvedLayout(
        template_id=template.id,
        panel_count=sum(rows),
        description=describe_custom(rows),
    )


# Custom row editing. Each helper returns a new list.

def add_row(rows: list[int]) -> list[int]:
    return [*rows, 1]


def remove_row(rows: list[int]) -> list[int]:
    return rows[:-1] if len(rows) > 1 else list(rows)


def set_columns(rows: list[int], row_index: int, columns: int) -> list[int]:
    if not 0 <= row_index < len(rows):
        raise LayoutError(f"No row at index {row_index}", {"row_index": row_index})
    if columns < 1:
        raise LayoutError("A row must have at least one panel", {"columns": columns})
    return [columns if i == row_index else c for i, c in enumerate(rows)]
