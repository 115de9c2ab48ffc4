"""对外服务入口。"""

from sydney_core.api.service import SessionOrchestrator, build_orchestrator, get_default_orchestrator

__all__ = ["SessionOrchestrator", "build_orchestrator", "get_default_orchestrator"]
