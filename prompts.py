"""
prompts.py — Prompts for each stage of overview generation.

Three stages talk to the model:
  - module identification: pick the directories worth analysing on their own
  - directory summary: deep walkthrough of one directory, given its sources
  - merge: one document built from every directory walkthrough
"""

from __future__ import annotations
from typing import Mapping, Optional


FILE_DELIMITER = "-" * 40
DEFAULT_WORD_BUDGET = 5000


# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

MODULE_IDENTIFICATION_SYSTEM_PROMPT = """You are an expert AI assistant that helps analyze codebases and identify key services, modules, or components.
Your task is to identify logically separate parts of the codebase that should be analyzed individually."""

SUMMARIZATION_SYSTEM_PROMPT = """You are an expert AI assistant that helps analyze codebases and generate comprehensive technical overviews.
Your task is to generate detailed summaries of code components and create a unified walkthrough of the entire system."""


# ---------------------------------------------------------------------------
# Module identification
# ---------------------------------------------------------------------------

SELECTED_MODULES_TOOL = "selectedModules"

SELECTED_MODULES_SCHEMA = {
    "type": "object",
    "properties": {
        "selections": {
            "type": "array",
            "description": "List of services/modules selected and their reasons",
            "items": {
                "type": "object",
                "properties": {
                    "reason": {
                        "type": "string",
                        "description": "Explanation for including this service",
                    },
                    "modulePath": {
                        "type": "string",
                        "description": "Directory path of the service, relative to the repository root",
                    },
                },
                "required": ["reason", "modulePath"],
            },
        },
    },
    "required": ["selections"],
}


def module_identification_prompt(*, repo_file_tree: str) -> str:
    return f"""You are given the file tree of a repository. Your task is to identify upper-level directories that represent separate services, components, or top-level modules that should be analyzed individually in depth.

Look for directories that represent:
- Microservices
- API services
- Frontend applications
- Backend services
- Shared libraries or utilities
- Infrastructure configurations
- Domain-specific modules
- Major system components

These directories are logically independent components that require in-depth technical analysis individually. Be thorough and include all potentially significant directories.

Call the `{SELECTED_MODULES_TOOL}` tool with the directory paths (relative to the repository root) that should be treated as separate services or modules for detailed analysis. Prioritize recall over precision - be inclusive about which directories might contain important code. You must choose directories, not individual files.

Repository File Tree:
{repo_file_tree}"""


# ---------------------------------------------------------------------------
# Directory summary (map)
# ---------------------------------------------------------------------------

def format_source_files(file_contents: Mapping[str, str]) -> str:
    return "".join(
        f"\nFile: {path}\n{FILE_DELIMITER}\n{content}\n{FILE_DELIMITER}\n"
        for path, content in file_contents.items()
    )


def directory_summary_prompt(
    *,
    system_description: str,
    repo_file_tree: str,
    directory: str,
    dir_file_tree: str,
    file_contents: Mapping[str, str],
) -> str:
    return f"""Your task is to create a comprehensive, detailed analysis of this directory of code files. Generate an in-depth technical walkthrough that explains exactly what this component does, its internal architecture, implementation details, and its relationship to the broader system. Your response should be well formatted using markdown and easily digestible by an engineer navigating the codebase.

Additional Instructions:
- Begin with a clear explanation of the component's purpose, architecture, and key responsibilities
- Include complete and detailed directory structures using code blocks with the full file tree of the directory, with each file having comments on its functionality
- Explain the key components of this service or module and how it may interact with other services or modules, specifically enumerating the different types of data or message flows between components if there are any

System Description: {system_description}

Overall Repository File Tree:
{repo_file_tree}

Processing Directory: {directory}

Directory File Tree:
{dir_file_tree}

Source Files (file path and content):
{format_source_files(file_contents)}"""


# ---------------------------------------------------------------------------
# Merge (reduce)
# ---------------------------------------------------------------------------

def merge_summaries_prompt(
    *,
    system_description: str,
    repo_file_tree: str,
    summaries: Mapping[str, str],
    example: Optional[str] = None,
    word_budget: int = DEFAULT_WORD_BUDGET,
) -> str:
    summaries_block = "".join(
        f"Walkthrough for {directory}:\n{summary}\n\n"
        for directory, summary in summaries.items()
    )
    example_section = f"\nExample summary:\n{example}\n" if example else ""

    return f"""Create a comprehensive, technically detailed codebase walkthrough based on the component analyses provided. Your walkthrough should provide an in-depth understanding of the entire system's architecture, implementation details, and component interactions. Your response should be well formatted using markdown and easily digestible by an engineer navigating the codebase.

Additional Instructions:
- Begin with a thorough overview of the system's purpose, architecture, and key components
- Each walkthrough you are provided should have its own very thorough and highly technical section explaining the component's role in the system, its architecture, and a full file tree with comments for its files
- After listing all subcomponents, provide a detailed walkthrough of the system's operation, including explanations of data flow and inter-service interactions for the main user scenarios
- Then highlight the low-level details of the inter-component interactions (e.g. what messages service A sends to service B and what the message triggers). Explain the specific types of data or messages exchanged between specific services
- Keep the final merged overview under {word_budget} words. Closely follow the example summary for how to structure and write the overview

System Description: {system_description}

Overall Repository File Tree:
{repo_file_tree}

Walkthroughs for each major module/directory:
{summaries_block}{example_section}"""
