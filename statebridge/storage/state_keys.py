from __future__ import annotations

from enum import Enum
from typing import Final


class StorageDomain(str, Enum):
    GLOBAL = "global"
    WORKSPACE = "workspace"
    SECRETS = "secrets"


GLOBAL_STATE_AND_SETTINGS_KEYS: Final[frozenset[str]] = frozenset(
    {
        # settings
        "mode",
        "apiProvider",
        "apiModelId",
        "planModeApiProvider",
        "planModeApiModelId",
        "actModeApiProvider",
        "actModeApiModelId",
        "planActSeparateModelsSetting",
        "openAiBaseUrl",
        "ollamaBaseUrl",
        "requestTimeoutMs",
        "telemetrySetting",
        "preferredLanguage",
        "theme",
        "autoApprovalSettings",
        "browserSettings",
        "terminalOutputLineLimit",
        "enableCheckpointsSetting",
        "mcpMarketplaceEnabled",
        "customPrompt",
        # global state
        "userInfo",
        "welcomeViewCompleted",
        "lastShownAnnouncementId",
        "mcpServerOrder",
        "favoritedModelIds",
        "globalRulesToggles",
        "globalWorkflowToggles",
    }
)

SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {
        "apiKey",
        "anthropicApiKey",
        "openAiApiKey",
        "openRouterApiKey",
        "geminiApiKey",
        "mistralApiKey",
        "deepSeekApiKey",
        "awsAccessKey",
        "awsSecretKey",
        "awsSessionToken",
        "authNonce",
        "accountRefreshToken",
    }
)

LOCAL_STATE_KEYS: Final[frozenset[str]] = frozenset(
    {
        "localRulesToggles",
        "localWorkflowToggles",
        "localCursorRulesToggles",
        "localWindsurfRulesToggles",
        "workspaceRoots",
        "primaryRootIndex",
        "multiRootEnabled",
    }
)

# Task history has its own shared file and is not part of any domain.
_DOMAIN_KEYS: tuple[tuple[StorageDomain, frozenset[str]], ...] = (
    (StorageDomain.GLOBAL, GLOBAL_STATE_AND_SETTINGS_KEYS),
    (StorageDomain.SECRETS, SECRET_KEYS),
    (StorageDomain.WORKSPACE, LOCAL_STATE_KEYS),
)


def domain_for_key(key: str) -> StorageDomain | None:
    for domain, keys in _DOMAIN_KEYS:
        if key in keys:
            return domain
    return None
