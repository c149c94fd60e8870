page_prompt = f"""
{{aspect_ratio_instruction}}

{{character_sheet}}

**任务:** {{main_instruction}}

**风格:** {{style_prompt}}. {{color_instruction}}

**重要指令：** 生成的漫画中绝对不能包含任何文字、标题、音效词 (SFX) 或符号。如果场景需要对话框或气泡，请将它们画成【完全空白】。

**布局描述:** 图像必须包含 {{panel_count}} 个分镜，排列方式如下: {{layout_description}}

**分镜内容:**
{{panel_contents}}

**最终检查:** 验证最终图像的宽高比是否符合绝对要求，并且分镜布局和角色对应关系是否正确。
"""

# Character sheet

character_sheet_header = "**角色与参考图对应表 (Character Sheet):**\n你必须严格遵守此对应关系。参考图按此列表顺序提供。\n\n"

character_sheet_entry = f"""参考图 {{index}}: [{{type_label}}] "{{name}}"
- 核心描述: {{core_prompt}}

"""

character_sheet_footer = "在下面的分镜内容描述中，如果提到了某个角色的名字或指定了参考图，你【必须】使用上面表格中对应的参考图来绘制该角色。这是最重要的规则。"

character_sheet_empty = "**参考资料:** 未提供特定角色参考。"

# Aspect ratio / orientation

aspect_spread = "ABSOLUTE REQUIREMENT: The output image MUST BE LANDSCAPE with a strict 4:3 aspect ratio, representing a two-page spread. DO NOT generate a portrait image. This is the most important instruction."

aspect_single = "ABSOLUTE REQUIREMENT: The output image MUST BE PORTRAIT with a strict 2:3 aspect ratio. DO NOT generate a landscape image. This is the most important instruction."

aspect_webtoon = "REQUIREMENT: The output image MUST be a tall, vertical strip segment meant for vertical scrolling. Its height may be as long as the panels need; DO NOT generate a landscape image."

# Task framing

main_spread = "创建一个单一、统一的漫画风格图片，该图片为一个横版的跨页大图（double-page spread），其中包含按照指定布局排列的多个分镜。这种跨页用于营造宏大、有冲击力的场景，为翻页阅读的读者带来惊喜。"

main_single = "创建一个单一、统一的漫画风格图片，该图片为一个标准的竖版漫画页（comic page），其中包含按照指定布局排列的多个分镜。你需要注重复杂、多变的构图，以控制翻页阅读的节奏。"

main_webtoon = "创建一个单一、统一的漫画风格图片，该图片为一个竖版长条漫画（webtoon/strip）的一部分，其中包含按照指定布局排列的多个分镜。你需要使用简洁的、以垂直排列为主的布局，并利用画格间的间距和留白来控制上下滑动阅读的节奏。"

# Color

color_bw = "ABSOLUTE REQUIREMENT: The image MUST be in black and white (monochrome), using manga screen tones for shading. DO NOT use any color."

color_full = "The image should be in full, vibrant color."

# Per-panel lines

panel_line = "- 分镜 {index} 内容: [镜头: {camera_shot}] {description}{appearance}"

panel_appearance = " [出场{label}: {items}]"

panel_appearance_item = '"{name}" (参考图 {index})'

story_line = "分镜 {index}: {description}"

# Reference sheets for characters / assets

reference_prompt = "{style_prompt}, {type_name}设定集, 名为{name}的{type_name}的全身视图, 描述为: {description}"

# Story continuation

continuation_prompt = f"""
你是一位富有创意的漫画导演和编剧。到目前为止的故事是：“{{previous_story}}”。
现在，请为下一页续写故事。这一页有一个特殊的布局：“{{layout_description}}”，它包含 {{panel_count}} 个分镜。
{{context_image_note}}{{outline_note}}{{cast_note}}{{relationship_note}}{{preset_note}}
你的任务是为这 {{panel_count}} 个分镜中的【每一个】都提供：
1. 一个简洁、生动的故事描述。
2. 一个最适合该描述的【分镜镜头】。请从以下列表中精确选择分镜镜头：[{{camera_shots}}]
3. 该分镜中出场的所有角色的名字列表 (character_names)，名字必须与角色名单中的名字完全一致。
请以JSON格式提供你的回答。JSON对象应包含一个名为 "panel_details" 的键，其值为一个包含 {{panel_count}} 个对象的数组。每个对象都必须有三个键："description" (故事描述)、"camera_shot" (从列表中选择的分镜镜头) 和 "character_names" (出场角色名字列表)。
"""

continuation_context_image = "请特别参考这张图片作为接下来剧情的上下文。\n"

continuation_outline = "本页剧情大纲：“{outline}”。请围绕这个大纲展开。\n"

continuation_cast_restricted = "本页只允许出现以下角色，绝对不能引入任何其他角色：{names}。\n"

continuation_cast_open = "可以出场的角色有：{names}。\n"

continuation_cast_none = "本页不能出现任何已登记的角色。\n"

continuation_relationships = "角色与道具之间的关系：{facts}。\n"

continuation_relationship_fact = "“{subject}” {description} “{object}”"

continuation_preset = "第 {index} 个分镜必须且只能包含这些角色：{names}。\n"

continuation_fallback = "发生意外错误。英雄停顿了一下，不知道接下来该做什么。"

# Page editing

edit_remove_instruction = f"""
The user wants to remove an object or character from the image.
Your task is to perform an inpainting operation on the masked area.
Fill the masked region by intelligently continuing the surrounding background textures, colors, and patterns.
The final result should look natural and seamless, as if the object was never there.
The user's original request was: "{{instruction}}".
"""

edit_prompt = f"""
You are an expert AI image editor specializing in inpainting and object removal. Your task is to edit an image based on a mask and a user prompt.
- The first image is the original comic panel.
- The second image is a mask. You must ONLY apply changes to the non-black (e.g., white) areas of the mask. The black area must remain completely unchanged.
{{reference_note}}
User's instruction for the edit is: "{{instruction}}".
Strictly follow the mask. The edit should be confined ONLY to the non-black parts of the mask. Do not alter any other part of the original image.
The output must be a single, high-quality edited image.
"""

edit_reference_note = "- The third image is a reference. Use it as a style and content guide for the changes, but prioritize the inpainting task if it's a removal request."

edit_remove_keywords = ['remove', 'delete', 'get rid of', 'erase', '去掉', '删除', '擦掉', '去除']

extend_prompt = f"""
You are an expert comic artist performing outpainting. The first image is a comic page placed on a larger canvas.
The second image is a mask: fill ONLY the non-black (e.g., white) areas, continuing the existing artwork, panel borders, lighting and style seamlessly.
The black area is the original page and must remain completely unchanged. Do not add any text.
The story on this page is: "{{story_context}}".
"""
