from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from ..config import app_config
from ..errors import MissingInputError, NodeExecutionError
from ..llm import GeminiClient
from .base import NodeRegistry, NodeSpec, ParameterSpec

logger = logging.getLogger(__name__)

TEXT_MODELS = [
    "gemini-1.5-flash",
    "gemini-1.5-pro",
    "gemini-pro",
    "claude-3-haiku",
    "claude-3-sonnet",
    "claude-3-opus",
    "gpt-4o",
    "gpt-4-turbo",
    "gpt-3.5-turbo",
]
GEMINI_TEXT_MODELS = ["gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro"]
LANGUAGES = ["ko", "en", "ja", "zh", "es", "fr", "de", "ru", "pt", "it"]
ANALYSIS_TYPES = ["general", "detailed", "objects", "text", "faces", "colors"]

_CODE_BLOCK = re.compile(r"```([a-zA-Z0-9+#]+)?\s*([\s\S]*?)```")


def _estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


class AINodes:
    """AI node handlers; every one of them goes through ``text_generation``."""

    def __init__(self, llm: GeminiClient) -> None:
        self.llm = llm

    async def text_generation(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        prompt = inputs.get("prompt")
        if not prompt:
            raise MissingInputError("text-generation", "prompt")
        context = inputs.get("context")
        full_prompt = f"{prompt}\n\nContext: {context}" if context else str(prompt)
        model = str(params.get("model") or "gemini-1.5-flash")

        if not model.startswith("gemini"):
            return {
                "text": f"This is a simulated response from {model}. A provider API key is required.",
                "metadata": {"model": model, "simulated": True},
            }

        result = await self.llm.generate(
            full_prompt,
            api_key=str(params.get("apiKey") or ""),
            model=model,
            temperature=params.get("temperature"),
            max_output_tokens=params.get("maxTokens"),
            top_p=params.get("topP"),
            top_k=params.get("topK"),
        )
        return {
            "text": result.text,
            "metadata": {
                "model": model,
                "promptTokens": _estimate_tokens(str(prompt)),
                "completionTokens": _estimate_tokens(result.text),
                "finishReason": result.finish_reason,
            },
        }

    async def _generate(self, prompt: str, params: dict[str, Any]) -> str:
        result = await self.text_generation({"prompt": prompt}, params)
        return str(result["text"])

    async def summarization(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        text = inputs.get("text")
        if not text:
            raise MissingInputError("text-summarization", "text")
        formats = app_config.prompt_options("text_summarization", "formats")
        template = app_config.prompt(
            "text_summarization",
            "Summarize the following text in at most {max_length} words. {format_instruction}\n\n{text}",
        )
        prompt = template.format(
            max_length=params.get("maxLength", 100),
            format_instruction=formats.get(str(params.get("format", "paragraph")), ""),
            text=text,
        )
        return {"summary": await self._generate(prompt, params)}

    async def sentiment(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        text = inputs.get("text")
        if not text:
            raise MissingInputError("sentiment-analysis", "text")
        detailed = bool(params.get("detailed", False))
        if detailed:
            template = app_config.prompt(
                "sentiment_analysis",
                "Analyze the sentiment of the following text and respond with JSON "
                '{{"label": ..., "score": ...}}.\n\n{text}',
                key="detailed_template",
            )
        else:
            template = app_config.prompt(
                "sentiment_analysis",
                "Analyze the sentiment of the following text. Answer with exactly one of "
                "positive, negative or neutral.\n\n{text}",
            )
        raw = await self._generate(template.format(text=text), params)

        if detailed:
            try:
                return {"sentiment": json.loads(raw)}
            except json.JSONDecodeError:
                return {"sentiment": {"raw": raw, "error": "Could not parse JSON response"}}

        lowered = raw.lower()
        label = "neutral"
        if "positive" in lowered:
            label = "positive"
        elif "negative" in lowered:
            label = "negative"
        return {"sentiment": {"label": label, "raw": raw}}

    async def code_generation(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        prompt = inputs.get("prompt")
        if not prompt:
            raise MissingInputError("code-generation", "prompt")
        language = str(params.get("language", "auto"))
        template = app_config.prompt(
            "code_generation",
            "Generate {language_instruction}code for the following requirement. "
            "{explanation_instruction}\nAlways wrap the code in a markdown code block (```).\n\n{prompt}",
        )
        full_prompt = template.format(
            language_instruction="" if language == "auto" else f"{language} ",
            explanation_instruction=(
                "Include an explanation of the code."
                if params.get("includeExplanation", True)
                else "Provide only the code."
            ),
            prompt=prompt,
        )
        raw = await self._generate(full_prompt, params)

        detected = "unknown" if language == "auto" else language
        match = _CODE_BLOCK.search(raw)
        if match:
            detected = match.group(1) or detected
            code = match.group(2).strip()
        else:
            logger.debug("No fenced code block in response; using full text")
            code = raw.strip()
        if not code:
            code = "// No code was generated."
        return {"code": code, "language": detected}

    async def translation(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        text = inputs.get("text")
        if not text:
            raise MissingInputError("translation", "text")
        names = app_config.prompt_options("translation", "languages")
        source = str(params.get("sourceLanguage", "auto"))
        target = str(params.get("targetLanguage", "en"))
        format_instruction = (
            "Preserve the original formatting (line breaks, paragraphs)."
            if params.get("preserveFormatting", True)
            else ""
        )
        if source == "auto":
            template = app_config.prompt(
                "translation", "Translate the following text into {target}. {format_instruction}\n\n{text}"
            )
        else:
            template = app_config.prompt(
                "translation",
                "Translate the following {source} text into {target}. {format_instruction}\n\n{text}",
                key="source_template",
            )
        prompt = template.format(
            source=names.get(source, source),
            target=names.get(target, target),
            format_instruction=format_instruction,
            text=text,
        )
        return {"translatedText": await self._generate(prompt, params)}

    async def image_analysis(self, inputs: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
        image_url = inputs.get("imageUrl")
        if not image_url:
            raise MissingInputError("image-analysis", "imageUrl")
        analysis_type = str(params.get("analysisType", "general"))
        if analysis_type not in ANALYSIS_TYPES:
            raise NodeExecutionError(f"Unknown analysis type: {analysis_type}")
        instructions = app_config.prompt_options("image_analysis", "analysis_types")
        user_prompt = inputs.get("prompt") or instructions.get(analysis_type, "Describe this image.")
        model = params.get("model", "gemini-1.5-pro-vision")
        # No vision request is made; the description is simulated.
        return {
            "description": (
                f"Simulated image analysis from {model} for {image_url}. "
                f"Analysis type: {analysis_type}. Prompt: {user_prompt}"
            ),
            "tags": ["simulated", "image", "analysis", analysis_type],
        }


def register_ai_nodes(registry: NodeRegistry, llm: GeminiClient) -> None:
    nodes = AINodes(llm)
    registry.register(
        NodeSpec(
            type_name="text-generation",
            name="Text generation",
            description="Generates text with an AI model.",
            category="Text Generation",
            handler=nodes.text_generation,
            inputs=["prompt", "context"],
            outputs=["text", "metadata"],
            parameters=[
                ParameterSpec("model", "gemini-1.5-flash", "AI model to use", TEXT_MODELS, required=True),
                ParameterSpec("temperature", 0.7, "Sampling temperature (0.0 to 1.0)"),
                ParameterSpec("maxTokens", 1024, "Maximum tokens to generate"),
                ParameterSpec("topP", 0.95, "Nucleus sampling probability"),
                ParameterSpec("topK", 40, "Top-K token sampling"),
            ],
        )
    )
    registry.register(
        NodeSpec(
            type_name="text-summarization",
            name="Text summarization",
            description="Summarizes long text with an AI model.",
            category="Summarization",
            handler=nodes.summarization,
            inputs=["text"],
            outputs=["summary"],
            parameters=[
                ParameterSpec("model", "gemini-1.5-flash", "AI model to use", GEMINI_TEXT_MODELS, required=True),
                ParameterSpec("maxLength", 100, "Maximum summary length in words"),
                ParameterSpec("format", "paragraph", "Summary format", ["paragraph", "bullets", "tweetable"]),
            ],
        )
    )
    registry.register(
        NodeSpec(
            type_name="sentiment-analysis",
            name="Sentiment analysis",
            description="Classifies the sentiment of text.",
            category="Text Analysis",
            handler=nodes.sentiment,
            inputs=["text"],
            outputs=["sentiment"],
            parameters=[
                ParameterSpec("model", "gemini-1.5-flash", "AI model to use", GEMINI_TEXT_MODELS, required=True),
                ParameterSpec("detailed", False, "Return a scored JSON analysis"),
            ],
        )
    )
    registry.register(
        NodeSpec(
            type_name="code-generation",
            name="Code generation",
            description="Generates code with an AI model.",
            category="Code Generation",
            handler=nodes.code_generation,
            inputs=["prompt"],
            outputs=["code", "language"],
            parameters=[
                ParameterSpec(
                    "model",
                    "gemini-1.5-pro",
                    "AI model to use",
                    ["gemini-1.5-pro", "gemini-1.5-flash", "gemini-pro"],
                    required=True,
                ),
                ParameterSpec(
                    "language",
                    "auto",
                    "Code language",
                    ["auto", "javascript", "python", "java", "c++", "go", "rust", "typescript"],
                ),
                ParameterSpec("includeExplanation", True, "Include an explanation of the code"),
            ],
        )
    )
    registry.register(
        NodeSpec(
            type_name="translation",
            name="Translation",
            description="Translates text into another language.",
            category="Translation",
            handler=nodes.translation,
            inputs=["text"],
            outputs=["translatedText"],
            parameters=[
                ParameterSpec("model", "gemini-1.5-flash", "AI model to use", GEMINI_TEXT_MODELS, required=True),
                ParameterSpec("sourceLanguage", "auto", "Language of the input text", ["auto", *LANGUAGES]),
                ParameterSpec("targetLanguage", "en", "Language to translate into", LANGUAGES, required=True),
                ParameterSpec("preserveFormatting", True, "Keep line breaks and paragraphs"),
            ],
        )
    )
    registry.register(
        NodeSpec(
            type_name="image-analysis",
            name="Image analysis",
            description="Describes an image (simulated).",
            category="Vision",
            handler=nodes.image_analysis,
            inputs=["imageUrl", "prompt"],
            outputs=["description", "tags"],
            parameters=[
                ParameterSpec(
                    "model",
                    "gemini-1.5-pro-vision",
                    "Vision model to use",
                    ["gemini-1.5-pro-vision", "gemini-pro-vision"],
                    required=True,
                ),
                ParameterSpec("analysisType", "general", "Kind of analysis", ANALYSIS_TYPES),
            ],
        )
    )
