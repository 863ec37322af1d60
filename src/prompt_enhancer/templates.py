from __future__ import annotations

from dataclasses import dataclass

ORIGINAL_TEXT_PLACEHOLDER = "{originalText}"


@dataclass(frozen=True)
class EnhancementTemplate:
    """
    Prompt pair sent to the model for one style of enhancement.

    ``user_prompt_template`` must contain ``{originalText}``, which is replaced
    by the selected text.
    """

    id: str
    name: str
    description: str
    system_prompt: str
    user_prompt_template: str
    category: str = "general"

    def render(self, original_text: str, custom_instruction: str | None = None) -> str:
        if custom_instruction:
            return (
                f"{custom_instruction}\n\nOriginal prompt: \"{original_text}\"\n\nEnhanced prompt:"
            )
        return self.user_prompt_template.replace(ORIGINAL_TEXT_PLACEHOLDER, original_text)


def _user_prompt(instruction: str, label: str = "Enhanced prompt") -> str:
    return f'{instruction}\n\nOriginal prompt: "{ORIGINAL_TEXT_PLACEHOLDER}"\n\n{label}:'


BUILT_IN_TEMPLATES: dict[str, EnhancementTemplate] = {
    template.id: template
    for template in (
        EnhancementTemplate(
            id="general",
            name="General Enhancement",
            description="Improve clarity, structure, and effectiveness",
            system_prompt=(
                "You are an expert prompt engineer. Your task is to transform basic prompts "
                "into sophisticated, detailed, and effective prompts while preserving the "
                "original intent.\n\n"
                "Guidelines:\n"
                "- Make the prompt more specific and actionable\n"
                "- Add relevant context and constraints\n"
                "- Improve clarity and structure\n"
                "- Maintain the original purpose and tone\n"
                "- Add examples if helpful\n"
                "- Ensure the enhanced prompt is self-contained"
            ),
            user_prompt_template=_user_prompt(
                "Please enhance this prompt to make it more effective and detailed:"
            ),
        ),
        EnhancementTemplate(
            id="technical",
            name="Technical Coding Prompts",
            description="Optimize for code generation and technical tasks",
            system_prompt=(
                "You are an expert software engineer and prompt engineer. Transform basic "
                "technical prompts into comprehensive, detailed prompts that will generate "
                "better code and technical solutions.\n\n"
                "Guidelines:\n"
                "- Specify programming languages, frameworks, and versions\n"
                "- Include requirements, constraints, and best practices\n"
                "- Add error handling and edge case considerations\n"
                "- Specify code style and documentation requirements\n"
                "- Include testing requirements if applicable\n"
                "- Make requirements clear and unambiguous"
            ),
            user_prompt_template=_user_prompt(
                "Please enhance this technical prompt for better code generation:",
                "Enhanced technical prompt",
            ),
            category="technical",
        ),
        EnhancementTemplate(
            id="creative",
            name="Creative Writing",
            description="Enhance for creative and narrative tasks",
            system_prompt=(
                "You are an expert creative writing coach and prompt engineer. Transform basic "
                "creative prompts into rich, detailed prompts that inspire better creative "
                "output.\n\n"
                "Guidelines:\n"
                "- Add sensory details and atmosphere\n"
                "- Specify tone, style, and genre\n"
                "- Include character development hints\n"
                "- Add setting and context details\n"
                "- Suggest narrative structure\n"
                "- Encourage specific creative techniques"
            ),
            user_prompt_template=_user_prompt(
                "Please enhance this creative writing prompt:", "Enhanced creative prompt"
            ),
            category="creative",
        ),
        EnhancementTemplate(
            id="comments",
            name="Code Comments",
            description="Transform code snippets into well-documented code",
            system_prompt=(
                "You are an expert software engineer focused on code documentation. Transform "
                "basic code or code-related prompts into comprehensive documentation "
                "requests.\n\n"
                "Guidelines:\n"
                "- Request clear, concise comments\n"
                "- Specify documentation standards\n"
                "- Include function/method descriptions\n"
                "- Add parameter and return value documentation\n"
                "- Request examples where helpful\n"
                "- Ensure maintainability focus"
            ),
            user_prompt_template=_user_prompt(
                "Please enhance this code documentation prompt:", "Enhanced documentation prompt"
            ),
            category="documentation",
        ),
        EnhancementTemplate(
            id="custom",
            name="Custom Template",
            description="User-defined enhancement template",
            system_prompt=(
                "You are an expert prompt engineer. Enhance the given prompt according to the "
                "user's custom requirements while maintaining clarity and effectiveness."
            ),
            user_prompt_template=_user_prompt("Please enhance this prompt:"),
            category="custom",
        ),
    )
}


def get_template(name: str) -> EnhancementTemplate:
    key = name.lower()
    if key not in BUILT_IN_TEMPLATES:
        raise ValueError(f"Template '{name}' not found")
    return BUILT_IN_TEMPLATES[key]


def list_templates() -> list[EnhancementTemplate]:
    return list(BUILT_IN_TEMPLATES.values())
