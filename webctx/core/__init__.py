# コアモジュール
# スコープ付きデータストア、属性解決エンジン、要素アクチュエータ、待機、設定を提供
# （これらをまとめる WebContext は webctx パッケージから公開する）

from .actuator import ElementAction, ElementActuator, ScrollTo
from .artifacts import ArtifactsManager, Attachment
from .driver import PlaywrightDriver, PlaywrightElement, WebDriver, WebElement
from .errors import (
    BindingCycleError,
    ElementFault,
    ElementInteractionError,
    ElementNotFoundError,
    LocatorBindingError,
    LocatorBindingNotFoundError,
    LocatorLookupNotFoundError,
    RegexExtractionError,
    ScriptExecutionError,
    UnboundAttributeError,
    WaitTimeoutError,
    WebContextError,
    XPathEvaluationError,
)
from .locator import LocatorBinding, LocatorStrategy
from .resolver import AttributeResolver
from .scopes import BindingKey, ScopedData, ScopedDataStack
from .settings import Settings, WebSettings
from .waits import WaitSpec, wait_until

__all__ = [
    "ArtifactsManager",
    "Attachment",
    "AttributeResolver",
    "BindingCycleError",
    "BindingKey",
    "ElementAction",
    "ElementActuator",
    "ElementFault",
    "ElementInteractionError",
    "ElementNotFoundError",
    "LocatorBinding",
    "LocatorBindingError",
    "LocatorBindingNotFoundError",
    "LocatorLookupNotFoundError",
    "LocatorStrategy",
    "PlaywrightDriver",
    "PlaywrightElement",
    "RegexExtractionError",
    "ScopedData",
    "ScopedDataStack",
    "ScriptExecutionError",
    "ScrollTo",
    "Settings",
    "UnboundAttributeError",
    "WaitSpec",
    "WaitTimeoutError",
    "WebContextError",
    "WebDriver",
    "WebElement",
    "WebSettings",
    "XPathEvaluationError",
    "wait_until",
]
