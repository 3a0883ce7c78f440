"""Function declaration, schema generation and dispatch.

Example usage:
    from aifunctions import AgentState, ai_function, prompt, done

    class Story(AgentState):
        def initial(self):
            return prompt("Write a random topic for a story", ["write_topic"], 0.8)

        @ai_function
        def write_topic(self, topic: str):
            '''Write a story topic.

            Args:
                topic: One sentence describing the topic
            '''
            self.topic = topic
            return done()
"""

from .decorator import AiFunction, Parameter, ai_function, case_aliases
from .registry import DispatchResult, FunctionRegistry
from .schema import clean_schema

__all__ = [
    "ai_function",
    "AiFunction",
    "Parameter",
    "case_aliases",
    "FunctionRegistry",
    "DispatchResult",
    "clean_schema",
]
