"""
Prompt Template Engine.

Named text templates applied to input text before synthesis. A template
body wraps the caller's text through the {{text}} placeholder:

    "Please read the following content in a natural tone: {{text}}"

Behavior:
    - Disabled engine: apply_template() returns the text unchanged.
    - Unknown template name: falls back to "default".
    - Missing "default" as well: warns and returns the text unchanged.
    - Every occurrence of the placeholder is replaced.
    - "default" can be overwritten but never removed.

The mapping is owned by one PromptSystem instance held on the app
(app.state.prompts). Mutations are unlocked; concurrent writers to the
same name are last-writer-wins.

Usage:
    prompts = PromptSystem(enabled=True, default_template="Say: {{text}}")
    prompts.add_template("news", "Breaking news. {{text}}")
    prompts.apply_template("hello", "news")   # "Breaking news. hello"
"""
from __future__ import annotations

from typing import Dict, Optional

from tts_proxy.core.config import PLACEHOLDER, Defaults, PromptsConfig
from tts_proxy.core.logging import debug, get_logger, warn

_LOG = get_logger("tts-proxy.prompts")

DEFAULT_TEMPLATE_NAME = "default"


class PromptSystem:
    """
    Registry of named templates plus the enabled flag.

    Attributes:
        enabled: When False, apply_template() is a passthrough.
    """

    def __init__(self, enabled: bool = Defaults.PROMPTS_ENABLED,
                 default_template: str = Defaults.PROMPTS_DEFAULT_TEMPLATE):
        self.enabled = enabled
        self._templates: Dict[str, str] = {DEFAULT_TEMPLATE_NAME: default_template}
        debug(_LOG, "prompt_system_init", enabled=enabled, default_template=default_template)

    @classmethod
    def from_config(cls, config: PromptsConfig) -> "PromptSystem":
        return cls(enabled=config.enabled, default_template=config.default_template)

    def add_template(self, name: str, template: str) -> bool:
        """
        Insert or overwrite a template.

        Args:
            name: Template name.
            template: Body containing the {{text}} placeholder.

        Returns:
            True when stored. False (nothing stored) when name or body is
            empty or not a string, or the body lacks the placeholder.
        """
        if not name or not isinstance(name, str) or not template or not isinstance(template, str):
            warn(_LOG, "template_rejected", name=name, reason="invalid_arguments")
            return False

        if PLACEHOLDER not in template:
            warn(_LOG, "template_rejected", name=name, reason="missing_placeholder")
            return False

        self._templates[name] = template
        debug(_LOG, "template_added", name=name, template=template)
        return True

    def remove_template(self, name: str) -> bool:
        """
        Remove a template.

        Returns:
            False for "default" or an unknown name, True if an entry was deleted.
        """
        if name == DEFAULT_TEMPLATE_NAME:
            warn(_LOG, "template_remove_refused", name=name)
            return False

        removed = self._templates.pop(name, None) is not None
        if removed:
            debug(_LOG, "template_removed", name=name)
        return removed

    def list_templates(self) -> Dict[str, str]:
        """Snapshot of name -> body; later mutations do not affect it."""
        return dict(self._templates)

    def apply_template(self, text: str, template_name: Optional[str] = DEFAULT_TEMPLATE_NAME) -> str:
        """
        Substitute text into a named template.

        Never raises: a missing template degrades to the default one and
        then to the unchanged text.

        Args:
            text: Caller's input text.
            template_name: Template to apply (default "default").

        Returns:
            The processed text.
        """
        if not self.enabled:
            return text

        name = template_name or DEFAULT_TEMPLATE_NAME
        template = self._templates.get(name) or self._templates.get(DEFAULT_TEMPLATE_NAME)
        if not template:
            warn(_LOG, "template_missing", template_name=name)
            return text

        result = template.replace(PLACEHOLDER, text)
        debug(_LOG, "template_applied", template_name=name,
              original_length=len(text), result_length=len(result))
        return result
