"""静态配置：事件规则注册表、任务模板目录、模块配置"""

from .modules import MODULE_CONFIGS, CollectionBinding, ModuleConfig
from .patterns import PatternRegistry, generic_description
from .templates import TemplateCatalog, load_templates_file

__all__ = [
    "PatternRegistry",
    "generic_description",
    "TemplateCatalog",
    "load_templates_file",
    "MODULE_CONFIGS",
    "ModuleConfig",
    "CollectionBinding",
]
