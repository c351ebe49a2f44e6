"""
Corpus Loader

Loads prompt fragments and documents from text files and generates the
{model x prompt x document} test cases.

Prompt roles are derived from the file name prefix:
- system_*: system role in chat completions
- user_*: user role in chat completions
- assistant_*: assistant role in chat completions
- anything else: legacy single-message prompt
"""

import logging
from pathlib import Path

from llm_doc_bench.domain.constants import CORPUS_FILE_SUFFIX, ROLE_PREFIXES
from llm_doc_bench.domain.entities import DocumentUnit, PromptRole, PromptUnit, TestCase

logger = logging.getLogger(__name__)


class CorpusError(Exception):
    """Raised when a prompt or document corpus cannot be loaded"""
    pass


def classify_prompt(prompt_id: str) -> tuple[PromptRole, str]:
    """
    Determine the role and base name of a prompt from its identifier

    Args:
        prompt_id: File name without extension (e.g. "system_contract_review")

    Returns:
        (role, base_name); base_name equals prompt_id for legacy prompts
    """
    for prefix, role in ROLE_PREFIXES.items():
        if prompt_id.startswith(prefix):
            return PromptRole(role), prompt_id[len(prefix):]
    return PromptRole.LEGACY, prompt_id


def _corpus_files(directory: str | Path) -> list[Path]:
    """List corpus files in a stable order, skipping anything that isn't exactly *.txt"""
    path = Path(directory)
    if not path.is_dir():
        raise CorpusError(f"Corpus directory does not exist: {directory}")

    files = []
    for file in sorted(path.iterdir()):
        if file.is_file() and file.suffix == CORPUS_FILE_SUFFIX:
            files.append(file)
        else:
            logger.debug("Skipping non-%s file: %s", CORPUS_FILE_SUFFIX, file.name)
    return files


def load_prompts(directory: str | Path) -> dict[str, PromptUnit]:
    """
    Load all prompt fragments from a directory

    Args:
        directory: Directory containing *.txt prompt files

    Returns:
        Mapping of prompt id -> PromptUnit, in file name order

    Raises:
        CorpusError: If the directory does not exist
    """
    prompts: dict[str, PromptUnit] = {}
    for file in _corpus_files(directory):
        prompt_id = file.stem
        role, base_name = classify_prompt(prompt_id)
        prompts[prompt_id] = PromptUnit(
            id=prompt_id,
            role=role,
            base_name=base_name,
            content=file.read_text(encoding="utf-8"),
        )
        logger.info("Loaded prompt file: %s (%s)", file.name, role.value)
    return prompts


def load_documents(directory: str | Path) -> dict[str, DocumentUnit]:
    """
    Load all documents from a directory

    Args:
        directory: Directory containing *.txt documents

    Returns:
        Mapping of document id -> DocumentUnit, in file name order

    Raises:
        CorpusError: If the directory does not exist
    """
    documents: dict[str, DocumentUnit] = {}
    for file in _corpus_files(directory):
        documents[file.stem] = DocumentUnit(id=file.stem, content=file.read_text(encoding="utf-8"))
        logger.info("Loaded data file: %s", file.name)
    return documents


def generate_test_cases(
    models: list[str],
    prompts: dict[str, PromptUnit],
    documents: dict[str, DocumentUnit],
) -> list[TestCase]:
    """
    Build the cross-product of models, evaluable prompts and documents

    System and assistant fragments are not evaluated on their own; they are
    picked up through role correlation with user prompts.

    Returns:
        Test cases ordered by model, then prompt, then document
    """
    evaluable = []
    for prompt in prompts.values():
        if prompt.role in (PromptRole.SYSTEM, PromptRole.ASSISTANT):
            logger.info(
                "Skipping evaluation for %s prompt: %s (will be correlated with user prompts)",
                prompt.role.value, prompt.id,
            )
            continue
        evaluable.append(prompt)

    return [
        TestCase(model=model, prompt_unit=prompt, document_unit=document)
        for model in models
        for prompt in evaluable
        for document in documents.values()
    ]
