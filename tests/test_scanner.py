import unittest

from ccbot.errors import ParseError
from ccbot.scanner import TemplateBuffer, decode_instruction, scan_spans, split_arguments, unescape


class ScanSpansTests(unittest.TestCase):
    def test_nested_spans_are_reported_in_start_order(self) -> None:
        spans = scan_spans("a {b {c}} d")
        self.assertEqual([(span.start, span.end) for span in spans], [(2, 9), (5, 8)])
        self.assertIsNone(spans[0].parent)
        self.assertEqual(spans[1].parent, 0)
        self.assertEqual(spans[1].depth, 1)

    def test_escaped_braces_do_not_delimit(self) -> None:
        spans = scan_spans(r"\{not\} {x}")
        self.assertEqual([(span.start, span.end) for span in spans], [(8, 11)])

    def test_unexpected_close_brace_is_rejected(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            scan_spans("oops}")
        self.assertEqual(ctx.exception.user_message, "Unbalanced braces in custom command response.")

    def test_unclosed_open_brace_is_rejected(self) -> None:
        with self.assertRaises(ParseError):
            scan_spans("{set;x=1")


class DecodeTests(unittest.TestCase):
    def test_split_ignores_nested_and_escaped_semicolons(self) -> None:
        self.assertEqual(split_arguments(r"set;x;{a;b};c\;d"), ["set", "x", "{a;b}", r"c\;d"])

    def test_decode_strips_keyword(self) -> None:
        instruction = decode_instruction("{ random ;1;6}")
        self.assertEqual(instruction.keyword, "random")
        self.assertEqual(instruction.args, ("1", "6"))
        self.assertEqual(instruction.body, " random ;1;6")
        self.assertEqual(instruction.rest(0), "1;6")

    def test_unescape_only_touches_requested_characters(self) -> None:
        self.assertEqual(unescape(r"\{a\} \n"), r"{a} \n")
        self.assertEqual(unescape(r"\[1\]"), r"\[1\]")
        self.assertEqual(unescape(r"\[1\]", "{}[]"), "[1]")


class TemplateBufferTests(unittest.TestCase):
    def test_replacement_reflows_later_offsets(self) -> None:
        buffer = TemplateBuffer("Hi {a} and {b}!")
        first, second = buffer.spans
        self.assertEqual(buffer.start(second), 11)

        delta = buffer.replace_span(first, "LONGER")

        self.assertEqual(delta, 3)
        self.assertEqual(buffer.start(second), 14)
        self.assertEqual(buffer.end(second), 17)
        self.assertEqual(buffer.span_text(second), "{b}")
        self.assertEqual(buffer.text, "Hi LONGER and {b}!")
        self.assertEqual(len(buffer), 18)

    def test_shrinking_replacement_reflows_too(self) -> None:
        buffer = TemplateBuffer("{long}{b}")
        first, second = buffer.spans
        self.assertEqual(buffer.replace_span(first, ""), -6)
        self.assertEqual(buffer.start(second), 0)
        self.assertEqual(buffer.offsets()[-1], 3)

    def test_replacing_a_span_voids_the_spans_it_encloses(self) -> None:
        buffer = TemplateBuffer("x{outer {inner}}y")
        outer, inner = buffer.spans
        buffer.replace_span(outer, "!")
        self.assertTrue(outer.void)
        self.assertTrue(inner.void)
        self.assertEqual(list(buffer.live_spans()), [])
        self.assertEqual(buffer.text, "x!y")

    def test_delete_slots_reports_removed_length(self) -> None:
        buffer = TemplateBuffer("a{if}b{fi}c")
        marker, closer = buffer.spans
        removed = buffer.delete_slots(marker.first_slot, marker.last_slot)
        self.assertEqual(removed, 4)
        self.assertEqual(buffer.text, "ab{fi}c")
        self.assertEqual(buffer.start(closer), 2)
        self.assertFalse(closer.void)

    def test_live_spans_skips_spans_voided_during_iteration(self) -> None:
        buffer = TemplateBuffer("{a}{b {c}}{d}")
        seen = []
        for span in buffer.live_spans():
            seen.append(buffer.span_text(span))
            buffer.replace_span(span, "")
        self.assertEqual(seen, ["{a}", "{b {c}}", "{d}"])
        self.assertEqual(buffer.text, "")

    def test_offsets_stay_in_bounds_after_every_rewrite(self) -> None:
        templates = [
            "{a}",
            "Hi {a} and {b}!",
            "x{outer {inner}}y{z}",
            "{if;c}{b {c {d}}}{else}e{fi}tail",
            "{}{}{} {x {y} {z}}",
        ]
        replacements = ["", "x", "a much longer replacement", "{not a span}"]
        for template in templates:
            for shift in range(len(replacements)):
                with self.subTest(template=template, shift=shift):
                    buffer = TemplateBuffer(template)
                    for step, span in enumerate(buffer.live_spans()):
                        if step % 3 == 2:
                            buffer.delete_slots(span.first_slot, span.last_slot)
                        else:
                            buffer.replace_span(span, replacements[(step + shift) % len(replacements)])
                        self.assertEqual(len(buffer), len(buffer.text))
                        for live in buffer.live_spans():
                            self.assertTrue(0 <= buffer.start(live) <= buffer.end(live) <= len(buffer))
                            self.assertEqual(buffer.span_text(live)[0], "{")

    def test_render_unescapes_template_text_only(self) -> None:
        buffer = TemplateBuffer(r"\{a\} {b}")
        buffer.replace_span(buffer.spans[0], r"\{c\}")
        self.assertEqual(buffer.render(), r"{a} \{c\}")


if __name__ == "__main__":
    unittest.main()
