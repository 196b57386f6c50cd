"""Question renderers keyed by question type ``ui_component``.

A renderer turns a slot's question into a view model and turns raw learner
input into the response payload its ``response_type`` expects. Types with no
``ui_component`` fall back to a generic renderer chosen from the input and
response types.
"""

from typing import Any, ClassVar, Protocol

from examprep.models.exam import InputType, ResponseType


class QuestionRenderer(Protocol):
    ui_component: ClassVar[str]
    response_type: ClassVar[ResponseType]

    def view(self, question: dict[str, Any]) -> dict[str, Any]: ...

    def build_response(self, raw: Any) -> Any: ...


_REGISTRY: dict[str, type[QuestionRenderer]] = {}


def register(*keys: str):
    """Class decorator registering a renderer under its ``ui_component`` and any aliases."""

    def decorator(cls):
        for key in (cls.ui_component, *keys):
            _REGISTRY[key] = cls
        return cls

    return decorator


def registered_components() -> list[str]:
    return sorted(_REGISTRY)


class BaseRenderer:
    ui_component: ClassVar[str] = ""
    response_type: ClassVar[ResponseType] = ResponseType.STRUCTURED_DATA

    def view(self, question: dict[str, Any]) -> dict[str, Any]:
        return {
            "component": self.ui_component,
            "title": question.get("title"),
            "content": question.get("content"),
            "instructions": question.get("instructions"),
            "media": [m["media"] for m in question.get("media", [])],
        }

    def build_response(self, raw: Any) -> Any:
        return raw


@register("ielts-reading-mcq", "pte-reading-mcq-single", "pte-listening-mcq-single",
          "pte-listening-highlight-summary", "pte-listening-select-missing-word")
class SingleChoiceRenderer(BaseRenderer):
    ui_component = "generic-mcq"
    response_type = ResponseType.SELECTION
    multiple = False

    def view(self, question: dict[str, Any]) -> dict[str, Any]:
        view = super().view(question)
        view["options"] = [
            {"id": str(o["id"]), "text": o["option_text"]}
            for o in sorted(question.get("options", []), key=lambda o: o["display_order"])
        ]
        view["multiple"] = self.multiple
        return view

    def build_response(self, raw: Any) -> list[str]:
        if raw is None:
            return []
        selected = [str(v) for v in raw] if isinstance(raw, (list, tuple, set)) else [str(raw)]
        if not self.multiple:
            return selected[:1]
        return sorted(set(selected))


@register("pte-listening-mcq-multiple")
class MultipleChoiceRenderer(SingleChoiceRenderer):
    ui_component = "pte-reading-mcq-multiple"
    multiple = True


@register("ielts-writing-task-1", "ielts-writing-task-2", "pte-writing-summarize-written-text",
          "pte-writing-write-essay", "pte-listening-summarize-spoken-text",
          "pte-listening-write-dictation")
class TextResponseRenderer(BaseRenderer):
    ui_component = "generic-text-response"
    response_type = ResponseType.TEXT

    def view(self, question: dict[str, Any]) -> dict[str, Any]:
        view = super().view(question)
        view["multiline"] = True
        return view

    def build_response(self, raw: Any) -> str:
        return "" if raw is None else str(raw)


@register("ielts-speaking-part-1", "ielts-speaking-part-2", "pte-speaking-read-aloud",
          "pte-speaking-repeat-sentence", "pte-speaking-describe-image",
          "pte-speaking-answer-short-question", "pte-speaking-re-tell-lecture")
class SpeakingRenderer(BaseRenderer):
    ui_component = "generic-speaking"
    response_type = ResponseType.AUDIO_RECORDING

    def build_response(self, raw: Any) -> dict[str, Any]:
        if isinstance(raw, dict):
            return {"media_id": str(raw["media_id"]), **{k: v for k, v in raw.items() if k != "media_id"}}
        return {"media_id": str(raw)}


@register()
class ReorderRenderer(BaseRenderer):
    ui_component = "pte-reading-reorder-paragraphs"
    response_type = ResponseType.SEQUENCE

    def view(self, question: dict[str, Any]) -> dict[str, Any]:
        view = super().view(question)
        view["items"] = [
            {"id": str(o["id"]), "text": o["option_text"]}
            for o in sorted(question.get("options", []), key=lambda o: o["display_order"])
        ]
        return view

    def build_response(self, raw: Any) -> list[str]:
        return [str(item) for item in (raw or [])]


@register("pte-reading-fib-dragdrop", "pte-listening-fib-typing",
          "ielts-listening-form-completion")
class FillInBlanksRenderer(BaseRenderer):
    ui_component = "pte-reading-fib-dropdown"
    response_type = ResponseType.STRUCTURED_DATA

    def view(self, question: dict[str, Any]) -> dict[str, Any]:
        view = super().view(question)
        view["blanks"] = question.get("blanks_config") or []
        return view

    def build_response(self, raw: Any) -> dict[str, str]:
        """Blank id -> answer; empty answers are dropped."""
        return {str(k): str(v) for k, v in (raw or {}).items() if v not in (None, "")}


class FallbackRenderer(BaseRenderer):
    """Used for unknown components; keeps the raw payload."""

    ui_component = "fallback"

    def __init__(self, response_type: ResponseType = ResponseType.STRUCTURED_DATA):
        self.response_type = response_type


def get_renderer(question_type: dict[str, Any]) -> QuestionRenderer:
    """Resolve the renderer for a question type payload."""
    ui_component = question_type.get("ui_component")
    if ui_component:
        renderer_cls = _REGISTRY.get(ui_component)
        if renderer_cls is not None:
            return renderer_cls()
        return FallbackRenderer(ResponseType(question_type.get("response_type", "structured_data")))

    input_type = question_type.get("input_type")
    response_type = question_type.get("response_type")
    if input_type == InputType.MULTIPLE_CHOICE.value:
        return MultipleChoiceRenderer()
    if input_type == InputType.SINGLE_CHOICE.value:
        return SingleChoiceRenderer()
    if response_type == ResponseType.TEXT.value:
        return TextResponseRenderer()
    if response_type == ResponseType.AUDIO_RECORDING.value:
        return SpeakingRenderer()
    if response_type == ResponseType.SEQUENCE.value:
        return ReorderRenderer()
    return FallbackRenderer()
