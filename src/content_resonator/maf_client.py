"""Thin wrapper around Microsoft Agent Framework chat completion clients.

The framework is imported lazily so the rest of the package (and its tests)
can run with any object exposing ``complete(messages)`` in its place.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Any, Iterable, List

from .config import ModelSettings
from .errors import MAFIntegrationError


@dataclass(slots=True)
class ChatMessage:
    """Simple representation of a chat message compatible with this app."""

    role: str
    content: str


def _import_framework(module_name: str) -> Any:
    try:
        return import_module(module_name)
    except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
        missing = exc.name or "a required dependency"
        raise MAFIntegrationError(
            f"Microsoft Agent Framework dependency '{missing}' is missing. "
            "Reinstall the project dependencies (e.g. `pip install -e .`)."
        ) from exc


class MAFChatClient:
    """Dispatches chat completion calls through a MAF client bound to one key."""

    def __init__(self, settings: ModelSettings, api_key: str) -> None:
        if not api_key:
            raise MAFIntegrationError("An API credential is required.")
        self._settings = settings
        self._client = self._create_client(settings, api_key)

    @staticmethod
    def _create_client(settings: ModelSettings, api_key: str) -> Any:
        provider = settings.provider.lower()
        if provider in {"azure-openai", "azure_openai", "azure"}:
            module = _import_framework("agent_framework.azure")
            client_cls = getattr(module, "AzureOpenAIChatClient")
            return client_cls(
                api_key=api_key,
                deployment_name=settings.model,
                endpoint=settings.endpoint,
                api_version=settings.api_version,
            )
        if provider in {"openai", "oai"}:
            module = _import_framework("agent_framework.openai")
            client_cls = getattr(module, "OpenAIChatClient")
            return client_cls(
                api_key=api_key,
                model_id=settings.model,
                base_url=settings.endpoint,
            )
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Fold adjacent same-role messages so roles keep alternating."""

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                merged[-1] = ChatMessage(
                    role=message.role,
                    content=f"{merged[-1].content}\n\n{message.content}".strip(),
                )
                continue
            merged.append(message)
        return merged

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a chat completion call through the underlying MAF client."""

        framework = _import_framework("agent_framework")
        message_cls = getattr(framework, "ChatMessage")
        payload = [
            message_cls(role=msg.role, text=msg.content)
            for msg in self._merge_consecutive_roles(messages)
        ]
        response = await self._client.get_response(messages=payload)
        return ChatMessage(role="assistant", content=response.text or "")
