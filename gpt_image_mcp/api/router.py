from mcp.server.fastmcp import FastMCP

from gpt_image_mcp.api.endpoints import images


def register_tools(server: FastMCP) -> None:
    # structured output would repeat every image payload in the response
    server.add_tool(images.create_image, name="create-image", structured_output=False)
    server.add_tool(images.edit_image, name="edit-image", structured_output=False)
