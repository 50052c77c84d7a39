"""Retriever naming per calling domain.

All domains share ``ContextRetriever``; only the tool name, description and
headings change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.retrieval.retriever import ContextRetriever, RetrieverProfile

if TYPE_CHECKING:
    from src.memory.store import ConversationStore
    from src.memory.vector import VectorIndex

DOMAIN_PROFILES: dict[str, RetrieverProfile] = {
    profile.domain: profile
    for profile in (
        RetrieverProfile(
            domain="code",
            tool_name="search_code_context",
            description=(
                "Searches conversation history and vector memory for relevant code "
                "examples, technical documentation, and development context. Use when "
                "you need to reference previous code discussions, examples, or "
                "technical solutions."
            ),
            label="code",
        ),
        RetrieverProfile(
            domain="data-analysis",
            tool_name="search_data_analysis_context",
            description=(
                "Searches conversation history and vector memory for previous "
                "datasets, analyses, statistics and visualization decisions."
            ),
            label="data analysis",
            previous_heading="Relevant Previous Analyses",
        ),
        RetrieverProfile(
            domain="developer",
            tool_name="search_developer_context",
            description=(
                "Searches conversation history and vector memory for previous "
                "development tasks, repository changes and debugging sessions."
            ),
            label="developer",
        ),
        RetrieverProfile(
            domain="file-manager",
            tool_name="search_file_context",
            description=(
                "Searches conversation history and vector memory for previous file "
                "operations, paths and directory layouts."
            ),
            label="file management",
            previous_heading="Relevant Previous File Operations",
        ),
        RetrieverProfile(
            domain="content",
            tool_name="search_content_context",
            description=(
                "Searches conversation history and vector memory for previous drafts, "
                "tone guidelines and content requests."
            ),
            label="content",
            previous_heading="Relevant Previous Content",
        ),
        RetrieverProfile(
            domain="research",
            tool_name="search_research_context",
            description=(
                "Searches conversation history and vector memory for previous research "
                "findings, sources and open questions."
            ),
            label="research",
            previous_heading="Relevant Previous Research",
        ),
        RetrieverProfile(
            domain="system-admin",
            tool_name="search_system_admin_context",
            description=(
                "Searches conversation history and vector memory for previous system "
                "configuration, commands run and infrastructure incidents."
            ),
            label="system administration",
        ),
        RetrieverProfile(
            domain="documentation",
            tool_name="search_documentation_context",
            description=(
                "Searches conversation history and vector memory for previously "
                "written or referenced documentation."
            ),
            label="documentation",
            previous_heading="Relevant Previous Documentation",
        ),
        RetrieverProfile(
            domain="worker",
            tool_name="search_worker_context",
            description=(
                "Searches conversation history and vector memory for previous task "
                "executions and their results."
            ),
            label="worker",
            previous_heading="Relevant Previous Tasks",
        ),
        RetrieverProfile(
            domain="problem-solving",
            tool_name="search_problem_solving_context",
            description=(
                "Searches conversation history and vector memory for previous problems, "
                "approaches tried and solutions found."
            ),
            label="problem solving",
            previous_heading="Relevant Previous Solutions",
        ),
    )
}

SUPERVISOR_PROFILE = RetrieverProfile(
    domain="supervisor",
    tool_name="search_supervisor_context",
    description=(
        "Searches conversation history and vector memory for relevant multi-agent, "
        "delegation, and workflow context. Use when you need to reference previous "
        "delegation decisions, agent outcomes, or workflow discussions."
    ),
    label="supervisor",
    previous_heading="Relevant Previous Delegations/Workflows",
    recent_heading="Recent Supervisor Conversation Context",
)


def create_retriever(
    domain: str, store: ConversationStore, index: VectorIndex
) -> ContextRetriever:
    """Build the retriever for one calling domain.

    Raises:
        KeyError: *domain* is not a known domain.
    """
    profile = DOMAIN_PROFILES.get(domain)
    if profile is None:
        msg = f"Unknown retriever domain: {domain}"
        raise KeyError(msg)
    return ContextRetriever(profile, store, index)


def create_domain_retrievers(
    store: ConversationStore, index: VectorIndex
) -> dict[str, ContextRetriever]:
    """One retriever per known domain, keyed by domain."""
    return {domain: create_retriever(domain, store, index) for domain in DOMAIN_PROFILES}
