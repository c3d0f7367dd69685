"""
Prompt management for docpipe.
Loads prompt overrides from a YAML file and falls back to built-in prompts.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_FILE = Path("settings") / "prompts.yaml"

FALLBACK_PROMPTS: dict[str, dict[str, str]] = {
    "ocr": {
        "system": (
            "Convert the following document page to markdown. "
            "Return only the markdown with no explanation text. Do not include delimiters like ```markdown or ```html. "
            "You must include all information on the page. Do not exclude headers, footers, or subtext. "
            "Render tables as html. Render charts as markdown tables. "
            "Wrap checkboxes with the characters ☐ or ☑."
        ),
        "maintain_format": (
            "Markdown must maintain consistent formatting with the following page: \n\n\"\"\"{prior_page}\"\"\""
        ),
    },
    "extraction": {
        "system": (
            "Extract schema data from the following document. "
            "Return a single JSON object whose keys are the schema's properties. "
            "Use null for any value that is not present in the document. Do not invent data."
        ),
        "page_separator": "Pages of the document are separated by <hr><hr>.",
        "schema": "JSON schema:\n{schema}",
    },
}


class PromptManager:
    """Manages prompt loading and retrieval with YAML overrides and fallbacks"""

    def __init__(self, prompts_file: Path | None = None):
        """
        Initialize PromptManager

        Args:
            prompts_file: YAML file with prompt overrides (default: settings/prompts.yaml)
        """
        self.prompts_file = prompts_file or DEFAULT_PROMPTS_FILE
        self.prompts = self._load_prompts()

    def _load_prompts(self) -> dict[str, Any]:
        """Load prompts from the YAML file"""
        if not self.prompts_file.exists():
            logger.debug("Prompts file not found, using built-in prompts: %s", self.prompts_file)
            return {}

        try:
            with self.prompts_file.open("r", encoding="utf-8") as f:
                prompts = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError, UnicodeDecodeError) as e:
            logger.warning("Failed to load prompts from %s: %s", self.prompts_file, e)
            return {}

        if not isinstance(prompts, dict):
            logger.warning("Ignoring prompts file %s: top level must be a mapping", self.prompts_file)
            return {}

        logger.debug("Loaded prompts from %s", self.prompts_file)
        return prompts

    def get_prompt(self, category: str, prompt_type: str, **kwargs: Any) -> str:
        """Get a prompt template, formatted with kwargs, with built-in fallback"""
        section = self.prompts.get(category)
        template = section.get(prompt_type) if isinstance(section, dict) else None
        if not isinstance(template, str):
            template = FALLBACK_PROMPTS.get(category, {}).get(prompt_type)
        if template is None:
            raise KeyError(f"Unknown prompt: {category}.{prompt_type}")
        return template.format(**kwargs) if kwargs else template

    def ocr_prompt(self, maintain_format: bool = False, prior_page: str = "", custom_prompt: str | None = None) -> str:
        """Build the OCR system prompt, adding the prior page in format continuity mode"""
        prompt = custom_prompt or self.get_prompt("ocr", "system")
        if maintain_format and prior_page:
            prompt = f"{prompt}\n\n{self.get_prompt('ocr', 'maintain_format', prior_page=prior_page)}"
        return prompt

    def extraction_prompt(self, custom_prompt: str | None = None, multi_page: bool = False) -> str:
        """Build the extraction system prompt"""
        prompt = custom_prompt or self.get_prompt("extraction", "system")
        if multi_page:
            prompt = f"{prompt}\n\n{self.get_prompt('extraction', 'page_separator')}"
        return prompt

    def schema_prompt(self, schema_json: str) -> str:
        """Render the schema instructions sent alongside extraction input"""
        return self.get_prompt("extraction", "schema", schema=schema_json)
