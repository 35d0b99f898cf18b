"""CLI entry point for SpotiBot."""

import argparse
import asyncio
import json
import secrets
import sys


def main(argv=None):
    parser = argparse.ArgumentParser(prog="spotibot", description="SpotiBot Spotify agent")
    parser.add_argument("--config", default=None, help="Path to config file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_tools = sub.add_parser("tools", help="List available actions")
    p_tools.add_argument("--category", default=None, choices=["playlist", "track", "user", "search", "system"])

    sub.add_parser("stats", help="Show registry statistics")

    p_action = sub.add_parser("action", help="Execute one action directly")
    p_action.add_argument("name")
    p_action.add_argument("--params", default="{}", help="JSON object of parameters")

    p_chat = sub.add_parser("chat", help="Prompt the agent (interactive when no prompt is given)")
    p_chat.add_argument("prompt", nargs="?", default=None)
    p_chat.add_argument("--stream", action="store_true")

    p_auth = sub.add_parser("auth", help="Log in to Spotify and obtain access/refresh tokens")
    p_auth.add_argument("--code", default=None, help="Authorization code or the full redirect URL")
    p_auth.add_argument("--paste", action="store_true", help="Prompt for the redirect URL instead of listening")
    p_auth.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait for the callback")
    p_auth.add_argument("--save", action="store_true", help="Write the tokens into the config file")

    args = parser.parse_args(argv)

    from spotibot.app import SpotiBot

    app = SpotiBot(config_path=args.config, require_llm=args.command == "chat")
    app.initialize()

    if args.command == "tools":
        for action in app.registry.get_by_category(args.category) if args.category else app.registry.get_all():
            print(f"{action.name:<36} [{action.category}] {action.description}")
        return 0
    if args.command == "stats":
        print(json.dumps(app.registry.get_stats(), indent=2))
        return 0
    if args.command == "action":
        try:
            params = json.loads(args.params)
        except json.JSONDecodeError as e:
            parser.error(f"--params is not valid JSON: {e}")
        result = asyncio.run(_run_action(app, args.name, params))
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0 if result.success else 1
    if args.command == "auth":
        return asyncio.run(_auth(app, args))
    return asyncio.run(_chat(app, args.prompt, args.stream))


async def _auth(app, args):
    from spotibot.auth import CallbackListener, exchange_code, parse_callback, save_tokens
    from spotibot.config import config_file
    from spotibot.errors import SpotifyAPIError, SpotifyAuthError

    spotify = app.config.spotify
    if not (spotify.client_id and spotify.client_secret):
        print("error: spotify.clientId and spotify.clientSecret must be configured", file=sys.stderr)
        return 2
    state = secrets.token_urlsafe(16)
    try:
        print(f"Open this URL to authorize SpotiBot:\n{app.client.create_authorize_url(state)}", file=sys.stderr)
        if args.code:
            code = parse_callback(args.code)
        elif args.paste:
            code = parse_callback(input("Redirect URL or code: "), state)
        else:
            listener = CallbackListener.for_redirect_uri(spotify.redirect_uri, state)
            await listener.start()
            code = await listener.wait(args.timeout)
        tokens = await exchange_code(app.client, code)
        if args.save:
            path = save_tokens(config_file(args.config), tokens)
            print(f"Tokens saved to {path}", file=sys.stderr)
        print(json.dumps(tokens, indent=2))
        return 0
    except (SpotifyAuthError, SpotifyAPIError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        await app.close()


async def _run_action(app, name, params):
    try:
        return await app.execute(name, params)
    finally:
        await app.close()


async def _chat(app, prompt, stream):
    try:
        if prompt is not None:
            return await _one_turn(app, prompt, stream)
        while True:
            try:
                line = input("you> ").strip()
            except EOFError:
                return 0
            if line in ("exit", "quit"):
                return 0
            if line:
                await _one_turn(app, line, stream)
    finally:
        await app.close()


async def _one_turn(app, prompt, stream):
    if not stream:
        resp = await app.prompt(prompt)
        if not resp.success:
            print(f"error: {resp.error}", file=sys.stderr)
            return 1
        print(resp.text)
        return 0

    code = 0
    async for event in app.agent.stream(prompt):
        if event.type == "text":
            print(event.content, end="", flush=True)
        elif event.type == "tool-call":
            print(f"\n-> {event.tool_call.name}", file=sys.stderr)
        elif event.type == "finish":
            print()
            if not event.success:
                print(f"error: {event.error}", file=sys.stderr)
                code = 1
    return code


if __name__ == "__main__":
    sys.exit(main())
