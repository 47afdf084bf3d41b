from typing import List

from genspecs.core.generation_state import ProjectDetails

MAX_BOM_CHARS = 5000
TRUNCATION_MARKER = "... [truncated]"


class PromptBuilder:
    """System and user prompts for the four generated documents."""

    @staticmethod
    def _project_block(details: ProjectDetails) -> str:
        stories: List[str] = [f"- {story}" for story in details.user_stories]
        return (
            f"Project Name: {details.name}\n"
            f"Description: {details.description}\n"
            "User Stories:\n"
            + "\n".join(stories)
        )

    @staticmethod
    def readme_system_prompt() -> str:
        return (
            "You are a technical documentation expert. Generate a comprehensive README.md file "
            "following this exact structure:\n"
            "\n"
            "# [Project Name]\n"
            "\n"
            "## Overview\n"
            "[Brief project overview]\n"
            "\n"
            "## Features\n"
            "- [List of high level features]\n"
            "\n"
            "## System Requirements\n"
            "\n"
            "## Dependencies\n"
            "\n"
            "## Architecture\n"
            "\n"
            "## Core Components\n"
            "\n"
            "Use the provided project details to populate the sections. Extract key information "
            "from the description and user stories to create a comprehensive README. "
            "Focus on technical accuracy and clarity."
        )

    @staticmethod
    def readme_user_prompt(details: ProjectDetails, dependency_content: str = "") -> str:
        return (
            "Please generate a README.md for my project with these details:\n"
            "\n"
            f"{PromptBuilder._project_block(details)}\n"
            "\n"
            "Generate the README following the structure exactly as specified in the system prompt."
        )

    @staticmethod
    def bom_system_prompt() -> str:
        return (
            "You are a technical documentation expert. Generate a Bill of Materials (BOM) document "
            "following this exact structure:\n"
            "\n"
            "#### Bill of Materials\n"
            "\n"
            "1. Components\n"
            "   1. Core Features\n"
            "   2. Supporting Features\n"
            "2. Technical Stack\n"
            "   1. Frontend\n"
            "   2. Backend\n"
            "   3. Utilities\n"
            "3. Dependencies\n"
            "   1. Core Libraries\n"
            "   2. Third-party Dependencies\n"
            "4. Functional Requirements\n"
            "   1. MVP Core Functionalities\n"
            "\n"
            "Extract information from the project details and README to populate each section. "
            "Focus on technical accuracy and completeness.\n"
            "Ensure all components, dependencies, and requirements are properly categorized."
        )

    @staticmethod
    def bom_user_prompt(details: ProjectDetails, dependency_content: str = "") -> str:
        return (
            "Please generate a Bill of Materials for my project with these details:\n"
            "\n"
            f"{PromptBuilder._project_block(details)}\n"
            "\n"
            "README Content:\n"
            f"{dependency_content}\n"
            "\n"
            "Generate the BOM following the structure exactly as specified in the system prompt.\n"
            "Analyze the project details to identify and categorize all technical components, "
            "dependencies, and requirements."
        )

    @staticmethod
    def roadmap_system_prompt() -> str:
        return (
            "# Instructions\n"
            "\n"
            "- Review and analyze the Required documents\n"
            "- Then decompose and suggest a step by step plan to development\n"
            "- Break down complex tasks into subtasks (scale of 1-5, 5 being very complex)\n"
            "- Ensure the plan is outlined in Milestones\n"
            "- Phases: Static UI (UI scaffold, no functionality yet) -> Frontend -> Backend -> UI Polish\n"
            "- Only output the roadmap in markdown format and omit everything else\n"
            "\n"
            "<output_format>\n"
            "## Phase 1: Static UI Implementation (Complexity: 2)\n"
            "\n"
            "### Milestone 1.1: Project Setup\n"
            "- [ ] Initialize the project repository and tooling\n"
            "- [ ] Set up project structure and routing\n"
            "- [ ] Implement base layout components\n"
            "\n"
            "### Milestone 1.2: Initial Form UI\n"
            "- [ ] Create project initialization form components\n"
            "  - [ ] Project name input\n"
            "  - [ ] Project description input\n"
            "</output_format>\n"
        )

    @staticmethod
    def roadmap_user_prompt(details: ProjectDetails, dependency_content: str = "") -> str:
        return (
            "Please generate a Project Roadmap for my project with these details:\n"
            "\n"
            f"{PromptBuilder._project_block(details)}\n"
            "\n"
            "Key BOM Components:\n"
            f"{truncate_content(dependency_content)}\n"
            "\n"
            "Generate the Roadmap following the structure exactly as specified in the system prompt.\n"
            "Focus on the most critical components and phase transitions.\n"
            "If BOM content was truncated, prioritize the most important elements."
        )

    @staticmethod
    def implementation_system_prompt() -> str:
        return (
            "# Instructions\n"
            "\n"
            "Create a detailed task plan for developing a software feature, ensuring the following structure:\n"
            "\n"
            "1. Divide the feature into milestones (Ensure to follow the \"Phases\" outlined in \"roadmap.md\")\n"
            "   - Each milestone should represent a significant deliverable or phase of the project.\n"
            "   - Include a clear objective describing the goal of the milestone and acceptance criteria "
            "defining what qualifies the milestone as complete.\n"
            "2. Break down each milestone into tasks\n"
            "   - Each task should be tightly scoped, actionable, small, and independent.\n"
            "   - Decompose and draft a step by step plan to development.\n"
            "   - Decompose complex tasks (complexity > 2 on a 1-5 scale) into subtasks\n"
            "   - Clear technical scope\n"
            "   - Specific and descriptive implementation details (without being too verbose)\n"
            "   - Integration points with existing code\n"
            "   - Concrete deliverables\n"
            "   - Technology choices\n"
            "3. Specify dependencies\n"
            "   Identify and document relationships between tasks, indicating which tasks depend on others.\n"
            "4. Include file references\n"
            "   For each task, specify which file(s) to modify, and note if a file needs to be created.\n"
            "5. Format the tasks as markdown checkboxes\n"
            "   Use markdown formatting to ensure tasks are easy to track and check off."
        )

    @staticmethod
    def implementation_user_prompt(details: ProjectDetails, dependency_content: str = "") -> str:
        return (
            "Please generate an Implementation Plan for my project with these details:\n"
            "\n"
            f"{PromptBuilder._project_block(details)}\n"
            "\n"
            "Roadmap Content:\n"
            f"{dependency_content}\n"
            "\n"
            "Generate the Implementation Plan following the structure exactly as specified in the system prompt.\n"
            "Break down each roadmap phase into detailed, actionable implementation tasks."
        )


def truncate_content(content: str, limit: int = MAX_BOM_CHARS) -> str:
    if len(content) <= limit:
        return content
    return f"{content[:limit]}{TRUNCATION_MARKER}"
