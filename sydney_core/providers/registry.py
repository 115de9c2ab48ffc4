"""协议常量表。

服务端按版本校验问题帧里的 optionsSets / allowedMessageTypes / sliceIds 等令牌，
这些值必须原样发送，升级时整体替换一个 ProtocolProfile 即可，不要在业务代码里拼接。
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

from sydney_core.domain.exceptions import ValidationError


@dataclass(frozen=True)
class ProtocolProfile:
    """某个协议版本的完整常量集合。"""

    name: str
    conversation_url: str
    hub_url: str
    source: str
    options_sets: Tuple[str, ...]
    allowed_message_types: Tuple[str, ...]
    slice_ids: Tuple[str, ...]
    locale: str
    market: str
    region: str
    target: str = "chat"
    question_type: int = 4
    success_value: str = "success"
    unauthorized_value: str = "UnauthorizedRequest"
    headers: Tuple[Tuple[str, str], ...] = ()


SYDNEY_2023_03 = ProtocolProfile(
    name="sydney-2023-03",
    conversation_url="https://www.bing.com/turing/conversation/create",
    hub_url="wss://sydney.bing.com/sydney/ChatHub",
    source="cib",
    options_sets=(
        "nlu_direct_response_filter",
        "deepleo",
        "disable_emoji_spoken_text",
        "responsible_ai_policy_235",
        "enablemm",
        "harmonyv3",
        "trn8req120",
        "rai253",
        "h3topp",
        "cricinfo",
        "cricinfov2",
        "localtime",
        "dv3sugg",
    ),
    allowed_message_types=(
        "Chat",
        "InternalSearchQuery",
        "InternalSearchResult",
        "Disengaged",
        "InternalLoaderMessage",
        "RenderCardRequest",
        "AdsQuery",
        "SemanticSerp",
        "GenerateContentQuery",
        "SearchQuery",
    ),
    slice_ids=(
        "checkauth",
        "222dtappids0",
        "302limit",
        "302limit",
        "228h3adss0",
        "h3adss0",
        "301rai253",
        "301rai253",
        "303h3topp",
        "225cricinfo",
        "225cricinfo",
        "224local",
        "224local",
    ),
    locale="zh-CN",
    market="zh-CN",
    region="TW",
    headers=(
        ("referer", "https://www.bing.com/search?q=Bing+AI&showconv=1&FORM=hpcodx"),
        (
            "user-agent",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/110.0.0.0 Safari/537.36 Edg/110.0.1587.49",
        ),
        ("accept", "application/json"),
        ("x-ms-useragent", "azsdk-js-api-client-factory/1.0.0-beta.1 core-rest-pipeline/1.10.0 OS/Win32"),
    ),
)


PROFILE_REGISTRY: Mapping[str, ProtocolProfile] = {
    SYDNEY_2023_03.name: SYDNEY_2023_03,
}

DEFAULT_PROFILE = SYDNEY_2023_03


def get_profile(name: str) -> ProtocolProfile:
    """根据名称获取 ProtocolProfile，名称不区分大小写；未知名称抛 ValidationError。"""

    key = (name or "").lower()
    for k, profile in PROFILE_REGISTRY.items():
        if k.lower() == key:
            return profile
    raise ValidationError(code="UNKNOWN_PROFILE", message=f"unknown protocol profile: {name!r}")


def default_headers(profile: ProtocolProfile = DEFAULT_PROFILE) -> Dict[str, str]:
    return dict(profile.headers)
