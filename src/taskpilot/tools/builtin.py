"""Built-in agent tools.

These return canned data: they describe the action the model asked for without
touching a filesystem, sandbox, search engine or media backend.
"""

from __future__ import annotations

import json
import math
import uuid
from typing import Any, Dict, Sequence

import yaml

from .base import Tool, ToolContext, ToolResult
from .registry import ToolRegistry


def _load_structured(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError:
            return text


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class CannedTool(Tool):
    """Parses the JSON/YAML arguments and returns a structured canned payload."""

    required: Sequence[str] = ()
    choices: Dict[str, Sequence[str]] = {}

    def run(self, *, input_text: str, context: ToolContext) -> ToolResult:
        args = _load_structured(input_text) if input_text else {}
        if not isinstance(args, dict):
            args = {"input": args}
        missing = [key for key in self.required if key not in args]
        if missing:
            raise ValueError(f"{self.name} requires arguments: {', '.join(missing)}")
        for key, allowed in self.choices.items():
            if key in args and args[key] not in allowed:
                raise ValueError(f"{self.name}: '{key}' must be one of {list(allowed)}")
        data = self.respond(args, context)
        return ToolResult(content=json.dumps(data), data=data)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:  # pragma: no cover - abstract
        raise NotImplementedError


# Code agent


class WriteFileTool(CannedTool):
    """Write code to a file. Args: path, content, language."""

    required = ("path", "content", "language")

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "path": args["path"],
            "language": args["language"],
            "size": len(str(args["content"])),
            "content": args["content"],
        }


class ExecuteCodeTool(CannedTool):
    """Execute Python code in a secure sandbox. Args: code, description."""

    required = ("code",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        sandbox = self.options.get("sandbox")
        if not sandbox:
            return {"success": False, "error": "Code sandbox not configured."}
        return {"success": True, "output": "", "sandbox": sandbox, "executionTime": "0ms"}


class RunTestsTool(CannedTool):
    """Run tests for the code. Args: testCommand, testFiles."""

    required = ("testCommand",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        files = args.get("testFiles") or []
        return {"success": True, "passed": len(files), "failed": 0, "coverage": "85%"}


class InstallPackageTool(CannedTool):
    """Install packages. Args: packages, dev (optional)."""

    required = ("packages",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "installed": list(args["packages"]),
            "type": "devDependencies" if args.get("dev") else "dependencies",
        }


# Research agent


class WebSearchTool(CannedTool):
    """Search the web for information. Args: query, numResults (optional)."""

    required = ("query",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "query": args["query"],
            "results": [
                {
                    "title": "Search result placeholder",
                    "url": "https://example.com",
                    "snippet": "This would be actual search results...",
                }
            ],
            "totalResults": int(args.get("numResults", 10)),
        }


class BrowseUrlTool(CannedTool):
    """Navigate to a URL and extract content. Args: url, extractText, extractLinks."""

    required = ("url",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        extract_text = args.get("extractText", True)
        return {
            "success": True,
            "url": args["url"],
            "title": "Page Title",
            "content": "Extracted page content..." if extract_text else None,
            "links": [],
        }


class ExtractContentTool(CannedTool):
    """Extract structured data from a webpage. Args: url, selector, format."""

    required = ("url", "format")
    choices = {"format": ("text", "json", "table")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "url": args["url"],
            "format": args["format"],
            "data": "Extracted structured data...",
        }


class GenerateChartTool(CannedTool):
    """Generate a chart or visualization. Args: type, title, data, options."""

    required = ("type", "title", "data")
    choices = {"type": ("bar", "line", "pie", "scatter", "table")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "chartId": _new_id("chart"),
            "type": args["type"],
            "title": args["title"],
            "imageUrl": "/charts/placeholder.png",
        }


class AnalyzeDataTool(CannedTool):
    """Analyze data and generate insights. Args: data, analysisType."""

    required = ("data", "analysisType")
    choices = {"analysisType": ("summary", "trends", "comparison", "correlation")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "analysisType": args["analysisType"],
            "insights": ["Key finding 1...", "Key finding 2..."],
            "statistics": {"count": 100, "mean": 50, "median": 48},
        }


# Presentation agent

SLIDE_LAYOUTS = ("title", "content", "two-column", "image", "chart", "quote", "timeline", "comparison")


class CreateSlideTool(CannedTool):
    """Create a new slide with a layout and content. Args: layout, title, content, notes."""

    required = ("layout", "title", "content")
    choices = {"layout": SLIDE_LAYOUTS}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "slideId": _new_id("slide"),
            "layout": args["layout"],
            "title": args["title"],
        }


class AddChartTool(CannedTool):
    """Add a chart to a slide. Args: slideId, chartType, data, title."""

    required = ("slideId", "chartType", "data", "title")
    choices = {"chartType": ("bar", "line", "pie", "donut", "area")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "chartId": _new_id("chart"),
            "slideId": args["slideId"],
            "chartType": args["chartType"],
            "title": args["title"],
        }


class AddImageTool(CannedTool):
    """Add an image to a slide, generated from a description. Args: slideId, imageDescription, position."""

    required = ("slideId", "imageDescription", "position")
    choices = {"position": ("full", "left", "right", "center")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "imageId": _new_id("img"),
            "slideId": args["slideId"],
            "position": args["position"],
            "description": args["imageDescription"],
        }


class ExportPptxTool(CannedTool):
    """Export the presentation to PPTX format. Args: filename, includeNotes."""

    required = ("filename",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        filename = args["filename"]
        return {
            "success": True,
            "filename": f"{filename}.pptx",
            "downloadUrl": f"/exports/{filename}.pptx",
            "includeNotes": bool(args.get("includeNotes", False)),
        }


# Multimodal agent


class AnalyzeImageTool(CannedTool):
    """Analyze an image and extract information. Args: imageUrl, analysisType."""

    required = ("imageUrl", "analysisType")
    choices = {"analysisType": ("describe", "ocr", "objects", "faces", "all")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        kind = args["analysisType"]
        return {
            "success": True,
            "imageUrl": args["imageUrl"],
            "analysisType": kind,
            "description": "Image analysis results...",
            "extractedText": "Extracted text..." if kind == "ocr" else None,
            "objects": ["object1", "object2"] if kind == "objects" else None,
        }


class GenerateImageTool(CannedTool):
    """Generate an image from a description. Args: prompt, style, size."""

    required = ("prompt",)
    choices = {
        "style": ("realistic", "illustration", "diagram", "icon", "ui"),
        "size": ("small", "medium", "large"),
    }

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        return {
            "success": True,
            "imageId": _new_id("img"),
            "prompt": args["prompt"],
            "style": args.get("style", "realistic"),
            "size": args.get("size", "medium"),
            "imageUrl": "/generated/placeholder.png",
        }


class TranscribeAudioTool(CannedTool):
    """Transcribe audio to text. Args: audioUrl, language, includeTimestamps."""

    required = ("audioUrl",)

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        timestamps = None
        if args.get("includeTimestamps"):
            timestamps = [{"start": 0, "end": 5, "text": "First segment..."}]
        return {
            "success": True,
            "audioUrl": args["audioUrl"],
            "language": args.get("language", "en"),
            "transcription": "Transcribed audio content...",
            "duration": "5:30",
            "timestamps": timestamps,
        }


class GenerateAudioTool(CannedTool):
    """Generate audio from text (text-to-speech). Args: text, voice, speed."""

    required = ("text",)
    choices = {"voice": ("male", "female", "neutral")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        text = str(args["text"])
        speed = float(args.get("speed", 1))
        if not 0.5 <= speed <= 2:
            raise ValueError(f"{self.name}: 'speed' must be between 0.5 and 2")
        return {
            "success": True,
            "audioId": _new_id("audio"),
            "text": text[:100] + "...",
            "voice": args.get("voice", "neutral"),
            "speed": speed,
            "audioUrl": "/generated/audio.mp3",
            "duration": f"{math.ceil(len(text) / 15)}s",
        }


class AnalyzeVideoTool(CannedTool):
    """Analyze video content. Args: videoUrl, analysisType."""

    required = ("videoUrl", "analysisType")
    choices = {"analysisType": ("summary", "transcript", "keyframes", "all")}

    def respond(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        kind = args["analysisType"]
        return {
            "success": True,
            "videoUrl": args["videoUrl"],
            "analysisType": kind,
            "duration": "10:30",
            "summary": "Video content summary...",
            "transcript": "Full transcript..." if kind in ("transcript", "all") else None,
            "keyframes": (
                [{"timestamp": 0, "description": "Opening scene"}]
                if kind in ("keyframes", "all")
                else None
            ),
        }


BUILTIN_TOOLS = {
    "write_file": WriteFileTool,
    "execute_code": ExecuteCodeTool,
    "run_tests": RunTestsTool,
    "install_package": InstallPackageTool,
    "web_search": WebSearchTool,
    "browse_url": BrowseUrlTool,
    "extract_content": ExtractContentTool,
    "generate_chart": GenerateChartTool,
    "analyze_data": AnalyzeDataTool,
    "create_slide": CreateSlideTool,
    "add_chart": AddChartTool,
    "add_image": AddImageTool,
    "export_pptx": ExportPptxTool,
    "analyze_image": AnalyzeImageTool,
    "generate_image": GenerateImageTool,
    "transcribe_audio": TranscribeAudioTool,
    "generate_audio": GenerateAudioTool,
    "analyze_video": AnalyzeVideoTool,
}


def register_builtin_tools(registry: ToolRegistry) -> None:
    for name, cls in BUILTIN_TOOLS.items():
        registry.register(name, lambda cls=cls, name=name: cls(name=name))
