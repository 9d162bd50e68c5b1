"""Tests for the codegen transcript zone grammar and ActionScript transformer."""

import unittest

from scenably.recorder.codegen import (
    DIALECT_JAVASCRIPT,
    DIALECT_PYTHON,
    ROLE_ENTRY,
    ROLE_EXIT,
    ROLE_PAGE_OPERATION,
    ROLE_SCAFFOLD,
    ROLE_TEARDOWN,
    ZONE_POST_BLOCK,
    ZONE_PRE_BLOCK,
    parse_action_line,
    render_transcript,
    segment_transcript,
    transform_transcript,
)
from scenably.recorder.script import Action, ActionScript, Selector

PYTHON_TRANSCRIPT = """import asyncio
import re
from playwright.async_api import Playwright, async_playwright, expect


async def run(playwright: Playwright) -> None:
    browser = await playwright.chromium.launch(headless=False)
    context = await browser.new_context()
    page = await context.new_page()
    await page.goto("https://example.com/")
    await page.get_by_role("link", name="More information...").click()
    await page.get_by_placeholder("Search").fill("playwright")
    await page.get_by_placeholder("Search").press("Enter")
    await page.get_by_label("Remember me").check()
    await page.locator("#country").select_option("NZ")
    await page.get_by_text("Results", exact=True).first.click()
    await expect(page.get_by_text("Done")).to_be_visible()

    # ---------------------
    await context.close()
    await browser.close()


async def main() -> None:
    async with async_playwright() as playwright:
        await run(playwright)
        await page.goto("https://after.example.com/")


asyncio.run(main())
"""

JAVASCRIPT_TRANSCRIPT = """const { chromium } = require('playwright');
page.goto('https://before.example.com/');

(async () => {
  const browser = await chromium.launch({
    headless: false
  });
  const context = await browser.newContext();
  const page = await context.newPage();
  await page.goto('https://example.com/');
  await page.getByRole('button', { name: 'Sign in' }).click();
  await page.getByLabel('Email').fill('user@example.com');
  await page.getByTestId('remember').check();
  await page.locator('#menu').nth(2).hover();
  await page.getByText('It\\'s here').dblclick();
  await page.keyboard.press('Escape');

  // ---------------------
  await context.close();
  await browser.close();
})();
await page.click('#after');
"""


class CodegenTransformerTests(unittest.TestCase):
    """Validate zone boundaries, action parsing and rendering."""

    def test_python_transcript_yields_in_block_actions_only(self) -> None:
        script = transform_transcript(PYTHON_TRANSCRIPT)
        self.assertEqual(
            list(script),
            [
                Action.navigate("https://example.com/"),
                Action(operation="click", selector=Selector("role", "link", name="More information...")),
                Action(operation="fill", selector=Selector("placeholder", "Search"), value="playwright"),
                Action(operation="press", selector=Selector("placeholder", "Search"), key="Enter"),
                Action(operation="check", selector=Selector("label", "Remember me")),
                Action(operation="select_option", selector=Selector("locator", "#country"), value="NZ"),
                Action(operation="click", selector=Selector("text", "Results", exact=True, nth=0)),
            ],
        )

    def test_javascript_transcript_maps_camel_case_and_ignores_outer_lines(self) -> None:
        script = transform_transcript(JAVASCRIPT_TRANSCRIPT)
        self.assertEqual(
            list(script),
            [
                Action.navigate("https://example.com/"),
                Action(operation="click", selector=Selector("role", "button", name="Sign in")),
                Action(operation="fill", selector=Selector("label", "Email"), value="user@example.com"),
                Action(operation="check", selector=Selector("test_id", "remember")),
                Action(operation="hover", selector=Selector("locator", "#menu", nth=2)),
                Action(operation="dblclick", selector=Selector("text", "It's here")),
                Action(operation="press", key="Escape"),
            ],
        )

    def test_transcript_without_entry_marker_is_empty(self) -> None:
        transcript = "await page.goto('https://example.com');\nawait page.click('#go');\n"
        self.assertEqual(transform_transcript(transcript), ActionScript())
        self.assertEqual(transform_transcript(""), ActionScript())

    def test_segment_transcript_assigns_roles_and_zones(self) -> None:
        dialect, lines = segment_transcript(JAVASCRIPT_TRANSCRIPT)
        self.assertEqual(dialect, DIALECT_JAVASCRIPT)
        by_text = {line.text.strip(): line for line in lines}
        self.assertEqual(by_text["page.goto('https://before.example.com/');"].zone, ZONE_PRE_BLOCK)
        self.assertEqual(by_text["(async () => {"].role, ROLE_ENTRY)
        self.assertEqual(by_text["const page = await context.newPage();"].role, ROLE_SCAFFOLD)
        self.assertEqual(by_text["await browser.close();"].role, ROLE_TEARDOWN)
        self.assertEqual(by_text["await page.goto('https://example.com/');"].role, ROLE_PAGE_OPERATION)
        self.assertEqual(by_text["})();"].role, ROLE_EXIT)
        self.assertEqual(by_text["await page.click('#after');"].zone, ZONE_POST_BLOCK)

    def test_python_block_ends_at_first_top_level_line(self) -> None:
        dialect, lines = segment_transcript(PYTHON_TRANSCRIPT)
        self.assertEqual(dialect, DIALECT_PYTHON)
        exits = [line for line in lines if line.role == ROLE_EXIT]
        self.assertEqual(len(exits), 1)
        self.assertTrue(exits[0].text.startswith("async def main()"))

    def test_unsupported_page_operation_is_skipped_with_warning(self) -> None:
        transcript = (
            "def run(playwright):\n"
            "    page.goto(\"https://example.com\")\n"
            "    page.get_by_role(\"row\").filter(has_text=\"x\").click()\n"
            "    page.click(\"#submit\")\n"
        )
        with self.assertLogs("scenably.recorder.codegen", level="WARNING") as logs:
            script = transform_transcript(transcript)
        self.assertEqual(
            list(script),
            [
                Action.navigate("https://example.com"),
                Action(operation="click", selector=Selector("locator", "#submit")),
            ],
        )
        self.assertIn("filter", "\n".join(logs.output))

    def test_direct_page_calls_use_raw_locator(self) -> None:
        action = parse_action_line('await page.fill("#q", "hello")', DIALECT_PYTHON)
        self.assertEqual(action, Action(operation="fill", selector=Selector("locator", "#q"), value="hello"))

    def test_chained_locators_are_joined(self) -> None:
        action = parse_action_line("await page.locator('#form').locator('button').click();", DIALECT_JAVASCRIPT)
        self.assertEqual(action, Action(operation="click", selector=Selector("locator", "#form >> button")))

    def test_non_literal_arguments_are_rejected(self) -> None:
        self.assertIsNone(parse_action_line("await page.get_by_text(re.compile('x')).click()", DIALECT_PYTHON))
        self.assertIsNone(parse_action_line("await page.getByText(`hi ${name}`).click();", DIALECT_JAVASCRIPT))

    def test_unsupported_keyword_arguments_are_rejected(self) -> None:
        for line, dialect in (
            ('await page.get_by_role("button", name="Save").click(button="right")', DIALECT_PYTHON),
            ('await page.get_by_text("Row").click(modifiers=["Shift"])', DIALECT_PYTHON),
            ('await page.locator("div", has_text="x").click()', DIALECT_PYTHON),
            ('await page.get_by_test_id("save", exact=True).click()', DIALECT_PYTHON),
            ('await page.goto("https://example.com", wait_until="networkidle")', DIALECT_PYTHON),
            ('await page.keyboard.press("Enter", delay=100)', DIALECT_PYTHON),
            ("await page.getByText('Row').click({ modifiers: ['Shift'] });", DIALECT_JAVASCRIPT),
            ("await page.locator('div', { hasText: 'x' }).click();", DIALECT_JAVASCRIPT),
        ):
            with self.subTest(line=line):
                self.assertIsNone(parse_action_line(line, dialect))

    def test_modified_click_is_skipped_with_warning(self) -> None:
        transcript = (
            "def run(playwright):\n"
            "    page.get_by_role(\"link\", name=\"Docs\").click(modifiers=[\"ControlOrMeta\"])\n"
            "    page.get_by_role(\"link\", name=\"Docs\").click()\n"
        )
        with self.assertLogs("scenably.recorder.codegen", level="WARNING") as logs:
            script = transform_transcript(transcript)
        self.assertEqual(
            list(script),
            [Action(operation="click", selector=Selector("role", "link", name="Docs"))],
        )
        self.assertIn("modifiers", "\n".join(logs.output))

    def test_transform_is_deterministic(self) -> None:
        self.assertEqual(transform_transcript(PYTHON_TRANSCRIPT), transform_transcript(PYTHON_TRANSCRIPT))

    def test_rendered_script_transforms_back_to_same_actions(self) -> None:
        for transcript in (PYTHON_TRANSCRIPT, JAVASCRIPT_TRANSCRIPT):
            script = transform_transcript(transcript)
            rendered = render_transcript(script)
            self.assertEqual(transform_transcript(rendered), script)

    def test_render_empty_script_keeps_runnable_shell(self) -> None:
        rendered = render_transcript(ActionScript())
        self.assertIn("async def run(playwright: Playwright) -> None:", rendered)
        self.assertIn("asyncio.run(main())", rendered)
        self.assertEqual(transform_transcript(rendered), ActionScript())


if __name__ == "__main__":
    unittest.main()
