from textwrap import dedent
from typing import List

SYSTEM_PROMPT: str = (
    "You are a helpful AI that will assist the user in providing code suggestions "
    "for their project based on their request."
)

SENDING_FILES_PROMPT: str = dedent("""
    I am now sending you the content of the requested files. Please inspect them.
    I will let you know when I am done sending the file contents. Please reply only with the word OK.
""").strip()

SPLIT_FILE_PROMPT: str = dedent("""
    Split the following file into its logical parts (imports, functions, classes, constants).
    Reply ONLY with the parts, each one wrapped in its own code block that starts with a language tag line.
    Do not change the code and do not write any other text.
""").strip()


def instruction_prompt(instructions: str) -> str:
    return f"The user has provided the following special instructions: {instructions}"


def feature_prompt(feature: str) -> str:
    return f"The user has requested the following feature: {feature}"


def file_list_prompt(paths: List[str]) -> str:
    listing = "\n".join(f"- {path}" for path in paths)
    return dedent("""
        The repository contains the following files:

        {listing}

        Please reply only with a non formatted comma separated list of the files you deem interesting for the task.
    """).strip().format(listing=listing)


def file_content_prompt(path: str, content: str, acknowledge: bool = True) -> str:
    closing = "File transmission end. Please reply only with the word OK." if acknowledge else "File transmission end."
    return f"File transmission start\n\nFile name: {path}\nContent: {content}\n\n{closing}"


def split_file_prompt(path: str, content: str) -> str:
    return f"{SPLIT_FILE_PROMPT}\n\nFile name: {path}\n\n{content}"


def suggestions_prompt(feature: str, languages: str) -> str:
    language_line = (
        f"The code should be written in the following language(s): {languages}.\n\n" if languages.strip() else ""
    )
    return (
        "You have received all the requested file contents. "
        "Please provide the code suggestions for adding functionality described here:\n\n"
        f"{feature}\n\n"
        f"{language_line}"
        "The format of your reply must be this:\n\n"
        "[\n"
        "{\n"
        '"filePath": "./file.ext",\n'
        '"fileContent": "file content here"\n'
        "},\n"
        "...\n"
        "]\n\n"
        "The filePath (file name) should be indicative of the contents of the file.\n"
        "Reply ONLY with a code block containing this JSON array. Make sure it is valid JSON."
    )
