from pydantic import BaseModel, Field

from mochi_tools import define_custom_tool


class SimpleParams(BaseModel):
    value: str = Field(description="The input value")


# Same name as the tool in tools/ so that loading both directories overrides it.
@define_custom_tool(name="simple", description="Simple tool - OVERRIDDEN", parameters=SimpleParams)
async def simple(args: SimpleParams, context) -> str:
    return "Overridden Result: " + args.value
