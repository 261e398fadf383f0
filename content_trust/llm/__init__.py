"""Completion model access and output recovery."""

from content_trust.llm.gateway import CompletionGateway, ModelParams
from content_trust.llm.json_recovery import RecoveryResult, recover_json

__all__ = ["CompletionGateway", "ModelParams", "RecoveryResult", "recover_json"]
