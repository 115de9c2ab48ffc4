"""会话身份协商。

本模块负责：

1. 带上登录态 Cookie（_U，作用域为协商接口所在域名）请求会话创建接口。
2. 处理网络错误、非 200 状态码以及服务端的拒绝标记。
3. 把响应 JSON 解析为 ConversationIdentity。

协商只做一次，不重试，是否重试交给调用方决定；本模块也不修改任何会话状态。
"""

import json
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from uuid import uuid4

import httpx

from sydney_core.config.settings import settings
from sydney_core.domain.exceptions import AuthenticationFailed, NetworkError, ProtocolError, ValidationError
from sydney_core.domain.models import ConversationIdentity
from sydney_core.infrastructure.logging.logger import logger
from sydney_core.providers.registry import DEFAULT_PROFILE, ProtocolProfile, default_headers

COOKIE_NAME = "_U"


class ConversationNegotiator:
    """会话创建接口的客户端。"""

    def __init__(self, cfg=settings, profile: ProtocolProfile = DEFAULT_PROFILE):
        # cfg 里包含 Cookie、代理、超时等配置
        self._settings = cfg
        self._profile = profile

    def negotiate(self, auth_cookie: Optional[str] = None) -> ConversationIdentity:
        cookie = auth_cookie or getattr(self._settings, "bing_cookie_u", None)
        if not cookie:
            raise ValidationError(code="MISSING_COOKIE", message="bing_cookie_u not set")

        url = self._profile.conversation_url
        headers = default_headers(self._profile)
        headers["x-ms-client-request-id"] = str(uuid4())
        cookies = httpx.Cookies()
        cookies.set(COOKIE_NAME, cookie, domain=urlparse(url).hostname or "")

        logger.debug("create conversation", extra={"extra": {"url": url}})
        try:
            with httpx.Client(cookies=cookies, **self._client_options()) as client:
                resp = client.get(url, headers=headers)
        except httpx.RequestError as e:
            logger.error("create conversation failed", extra={"extra": {"error": str(e)}})
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

        if resp.status_code != 200:
            logger.error("create conversation failed", extra={"extra": {"status": resp.status_code}})
            raise AuthenticationFailed(message=f"authentication failed: HTTP {resp.status_code}")

        identity = self._parse_response(resp.text)
        logger.debug(
            "create conversation success",
            extra={"extra": {
                "conversation_id": identity.conversation_id,
                "client_id": identity.client_id,
            }},
        )
        return identity

    def _client_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "timeout": getattr(self._settings, "http_timeout", 30.0),
            "trust_env": False,
        }
        proxy = getattr(self._settings, "proxy_url", None)
        if proxy:
            # 代理通常是本地抓包/翻墙工具，证书无法校验
            options["proxy"] = proxy
            options["verify"] = False
        return options

    def _parse_response(self, body: str) -> ConversationIdentity:
        """将协商接口的响应体解析为 ConversationIdentity。"""

        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            raise ProtocolError(message="conversation response is not json", raw=body)
        if not isinstance(data, dict):
            raise ProtocolError(message="conversation response is not an object", raw=body)

        result = data.get("result") or {}
        value = str(result.get("value") or "")
        if value == self._profile.unauthorized_value:
            message = f"{result.get('message') or ''} {value}".strip()
            logger.error("create conversation rejected", extra={"extra": {"error": message}})
            raise AuthenticationFailed(message=message)

        conversation_id = data.get("conversationId") or ""
        signature = data.get("conversationSignature") or ""
        if not conversation_id or not signature:
            logger.error("create conversation malformed", extra={"extra": {"body": body[:400]}})
            raise ProtocolError(message="conversation response missing identity fields", raw=body)

        return ConversationIdentity(
            conversation_id=conversation_id,
            client_id=data.get("clientId") or "",
            signature=signature,
        )
