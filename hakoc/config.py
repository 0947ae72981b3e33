"""
Compiler options and the resolved run configuration.
"""
import json
import os
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ViewEncapsulation(str, Enum):
    EMULATED = "emulated"
    NONE = "none"
    SHADOW = "shadow"


class ChangeDetectionStrategy(str, Enum):
    DEFAULT = "default"
    ON_PUSH = "on_push"


class MissingTranslationStrategy(str, Enum):
    IGNORE = "ignore"
    WARNING = "warning"
    ERROR = "error"


class FailurePolicy(str, Enum):
    """What a failed declaration does to the rest of its file's output."""
    DECLARATION = "declaration"
    FILE = "file"


class CompilerOptions(BaseModel):
    """User facing options, loadable from a hako.json file."""
    model_config = ConfigDict(extra="forbid")

    debug: bool = False
    default_encapsulation: ViewEncapsulation = ViewEncapsulation.EMULATED
    log_binding_update: bool = False
    use_jit: bool = False
    use_view_engine: bool = False
    enable_legacy_template: bool = True
    locale: Optional[str] = None
    translations: Optional[str] = None
    i18n_format: Optional[Literal["json", "xlf"]] = None
    missing_translation: MissingTranslationStrategy = MissingTranslationStrategy.WARNING
    failure_policy: FailurePolicy = FailurePolicy.DECLARATION
    schema_error_severity: Literal["warning", "error"] = "warning"
    emit_summaries: bool = False
    workers: int = Field(default=1, ge=1)

    @classmethod
    def from_file(cls, path, **overrides):
        """Options from a JSON file, with ``overrides`` taking precedence over its keys."""
        with open(path, 'r') as f:
            data = json.load(f)
        data.update(overrides)
        translations = data.get("translations")
        if translations and os.path.isfile(translations):
            # a path to the translation bundle rather than its text
            with open(translations, 'r') as f:
                data["translations"] = f.read()
        return cls.model_validate(data)


class CompilerConfig(BaseModel):
    """Resolved configuration shared (read-only) by every pipeline stage."""
    model_config = ConfigDict(frozen=True)

    gen_debug_info: bool = False
    default_encapsulation: ViewEncapsulation = ViewEncapsulation.EMULATED
    log_binding_update: bool = False
    use_jit: bool = False
    use_view_engine: bool = False
    enable_legacy_template: bool = True
    schema_error_severity: Literal["warning", "error"] = "warning"

    @classmethod
    def from_options(cls, options):
        return cls(
            gen_debug_info=options.debug,
            default_encapsulation=options.default_encapsulation,
            log_binding_update=options.log_binding_update,
            use_jit=options.use_jit,
            use_view_engine=options.use_view_engine,
            enable_legacy_template=options.enable_legacy_template,
            schema_error_severity=options.schema_error_severity,
        )
