import os
import time

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.prompts import PromptTemplate
from util.logging_util import setup_logger, log_llm_interaction

logger = setup_logger(__name__)

GEMINI_API_KEY_ENV = "GOOGLE_API_KEY"
DEFAULT_MODEL_NAME = "gemini-2.5-flash"


def get_gemini_api_key() -> str:
    api_key = os.environ.get(GEMINI_API_KEY_ENV)
    if not api_key:
        raise RuntimeError(f"{GEMINI_API_KEY_ENV} is not set")
    return api_key


def get_llm_response(template_path: str, params: dict, model_name: str = DEFAULT_MODEL_NAME) -> str:
    """
    Generates a response from the LLM based on a Jinja2 template file and parameters.

    Args:
        template_path: The absolute path to the Jinja2 template file.
        params: A dictionary of parameters to populate the template.
        model_name: The name of the Gemini model to use.

    Returns:
        The string response from the LLM.
    """
    start_time = time.time()

    llm = ChatGoogleGenerativeAI(
        model=model_name,
        google_api_key=get_gemini_api_key()
    )

    with open(template_path, "r") as f:
        template_content = f.read()

    prompt = PromptTemplate.from_template(template_content, template_format="jinja2")
    chain = prompt | llm

    response = chain.invoke(params)

    # Gemini can return content as a list of parts
    response_content = response.content
    if isinstance(response_content, list):
        text_parts = [part.get('text', '') for part in response_content if isinstance(part, dict) and 'text' in part]
        response_content = ''.join(text_parts)

    duration_ms = (time.time() - start_time) * 1000
    log_llm_interaction(logger, template_path, params, response_content, model_name, duration_ms)

    return response_content
