"""
Default agent configuration documents

Seeded into the configuration store for keys that do not exist yet. The
documents use the same camelCase shape that the config API reads and writes.
"""

from typing import Any, Dict

from app.schemas.agent_config import AgentType, build_config_key

CHAT_SYSTEM_PROMPT = (
    "You are a helpful assistant in a chat application. You can create and edit "
    "artifacts that are shown to the user next to the conversation: Python code, "
    "Mermaid diagrams and markdown documents."
)

PYTHON_AGENT_PROMPT = (
    "You are an expert Python developer. You write clean, idiomatic, runnable Python 3 "
    "code with clear names. Return only the code, without markdown fences."
)

MERMAID_AGENT_PROMPT = (
    "You are an expert at Mermaid diagrams. You produce valid Mermaid syntax that starts "
    "with the diagram type (for example 'flowchart TD' or 'sequenceDiagram'). Return only "
    "the diagram source, without markdown fences."
)

DOCUMENT_AGENT_PROMPT = (
    "You are a technical writer. You write well structured markdown documents with "
    "headings, short paragraphs and lists where they help the reader."
)

UPDATE_TEMPLATE = (
    "Here is the current content:\n\n{currentContent}\n\n"
    "Apply the following change and return the complete updated content:\n{updateInstruction}"
)

FIX_TEMPLATE = (
    "Here is the current content:\n\n{currentContent}\n\n"
    "It fails with the following error:\n{errorInfo}\n\n"
    "Return the complete corrected content."
)

EXPLAIN_TEMPLATE = (
    "Here is the current content:\n\n{currentContent}\n\n"
    "{updateInstruction}\n\nReturn the complete content with the explanations added."
)

SUGGESTION_TEMPLATE = (
    "Here is the current document:\n\n{currentContent}\n\n"
    "Suggest focused edits that address the following request:\n{instruction}\n\n"
    "Quote the exact original text for each edit so it can be located in the document."
)

PROVIDER_TOOLS_PROMPT = (
    "You answer questions that need fresh or external information. Search the web, read "
    "the given URLs or run code as needed, then reply with a concise answer and cite the "
    "sources you used."
)


def _operations(kind_label: str) -> Dict[str, Dict[str, Any]]:
    return {
        "generate": {
            "enabled": True,
            "description": f"Generate {kind_label} inline without creating an artifact",
            "systemPrompt": f"Generate {kind_label} for the request.",
        },
        "create": {
            "enabled": True,
            "description": f"Create a new {kind_label} artifact",
            "systemPrompt": f"Create {kind_label} that fulfills the request.",
        },
        "update": {
            "enabled": True,
            "description": f"Update an existing {kind_label} artifact",
            "systemPrompt": f"Update the existing {kind_label} as requested. Keep everything else unchanged.",
            "userPromptTemplate": UPDATE_TEMPLATE,
        },
        "fix": {
            "enabled": True,
            "description": f"Fix an error in an existing {kind_label} artifact",
            "systemPrompt": f"Fix the reported problem in the {kind_label} with the smallest correct change.",
            "userPromptTemplate": FIX_TEMPLATE,
        },
        "explain": {
            "enabled": True,
            "description": f"Add explanations to an existing {kind_label} artifact",
            "systemPrompt": f"Add clear explanatory comments to the {kind_label} without changing its behavior.",
            "userPromptTemplate": EXPLAIN_TEMPLATE,
        },
        "revert": {
            "enabled": True,
            "description": f"Restore an earlier version of a {kind_label} artifact",
        },
    }


def _document_operations() -> Dict[str, Dict[str, Any]]:
    operations = _operations("a markdown document")
    operations["suggestion"] = {
        "enabled": True,
        "description": "Suggest edits to an existing markdown document without changing it",
        "systemPrompt": (
            "Review the document and propose specific improvements. Each suggestion replaces "
            "one passage of the original text and says briefly why."
        ),
        "userPromptTemplate": SUGGESTION_TEMPLATE,
    }
    return operations


ARTIFACT_INPUT_DESCRIPTION = (
    "What to do, in plain language. Mention the artifact id when changing, "
    "fixing, explaining or reverting an existing artifact."
)


def _delegated_tool(description: str, parameter_description: str = ARTIFACT_INPUT_DESCRIPTION) -> Dict[str, Any]:
    return {
        "enabled": True,
        "description": description,
        "tool_input": {
            "type": "simple",
            "parameter_name": "input",
            "parameter_description": parameter_description,
        },
    }


def _document_tool() -> Dict[str, Any]:
    return {
        "enabled": True,
        "description": (
            "Create, update, explain or revert markdown documents such as reports, specs and notes, "
            "or suggest edits to one without changing it."
        ),
        "tool_input": {
            "type": "named",
            "parameters": {
                "operation": {
                    "parameter_description": "The operation to perform on the document",
                    "enum": ["create", "update", "explain", "revert", "suggestion"],
                },
                "instruction": {
                    "parameter_description": "What to write, change or suggest, in plain language",
                },
                "artifact_id": {
                    "parameter_description": "Id of the existing document; leave empty when creating one",
                },
                "target_version": {
                    "parameter_description": "Version to restore when reverting; defaults to the previous one",
                },
            },
        },
    }


def default_agent_configs(provider: str) -> Dict[str, Dict[str, Any]]:
    """Configuration documents for every agent type under the given provider"""
    return {
        build_config_key(AgentType.CHAT_MODEL_AGENT, provider): {
            "enabled": True,
            "systemPrompt": CHAT_SYSTEM_PROMPT,
            "availableModels": [
                {"id": "gemini-2.0-flash", "name": "Gemini 2.0 Flash", "enabled": True, "isDefault": True},
                {"id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro", "enabled": True},
            ],
            "tools": {
                "pythonAgent": _delegated_tool(
                    "Create, update, fix, explain or revert Python code artifacts."
                ),
                "mermaidAgent": _delegated_tool(
                    "Create, update, fix or revert Mermaid diagrams such as flowcharts and sequence diagrams."
                ),
                "documentAgent": _document_tool(),
                "providerToolsAgent": _delegated_tool(
                    "Search the web, read web pages from URLs and run code to answer questions "
                    "that need current or external information. Returns text, not an artifact.",
                    "The question or task, including any URLs to read."
                ),
            },
            "rateLimit": {"perMinute": 20},
        },
        build_config_key(AgentType.PYTHON_AGENT, provider): {
            "enabled": True,
            "systemPrompt": PYTHON_AGENT_PROMPT,
            "tools": _operations("Python code"),
        },
        build_config_key(AgentType.MERMAID_AGENT, provider): {
            "enabled": True,
            "systemPrompt": MERMAID_AGENT_PROMPT,
            "tools": _operations("a Mermaid diagram"),
        },
        build_config_key(AgentType.DOCUMENT_AGENT, provider): {
            "enabled": True,
            "systemPrompt": DOCUMENT_AGENT_PROMPT,
            "tools": _document_operations(),
        },
        build_config_key(AgentType.PROVIDER_TOOLS_AGENT, provider): {
            "enabled": True,
            "systemPrompt": PROVIDER_TOOLS_PROMPT,
            "tools": {
                "googleSearch": {"enabled": True},
                "urlContext": {"enabled": True},
                "codeExecution": {"enabled": False},
            },
        },
    }
