# betterask/base_utils.py

import json
import re
from collections import OrderedDict

import commentjson
import yaml
from json_repair import repair_json

from betterask.google_helpers import logger


class JsonParseError(ValueError):
    pass


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None):
        COLOR_CODES = {
            'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35', 'cyan': '36',
        }
        if color and color.lower() in COLOR_CODES:
            text = f"\033[{COLOR_CODES[color.lower()]}m{text}\033[0m"
        logger.info(str(text))
        return False

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def _coerce_field_to_str(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, indent=2)
        except TypeError:
            return str(value).strip()

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Replaces {key} placeholders with the matching kwargs value.

        Unlike str.format it only looks at the keys passed in kwargs, so literal braces
        elsewhere in a prompt (e.g. JSON examples) are left alone.
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.info(f"Missing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}")
        return result

    # -----------------------
    # JSON
    # -----------------------

    def load_fault_tolerant_json(self, json_str, ensure_ordered=False):
        """
        Loads model-produced JSON, tolerating code fences, comments and small syntax damage.

        Order of attempts: commentjson, yaml on a sanitized copy, then json_repair and both again.
        Raises JsonParseError when nothing yields a dict or list.
        """
        def sanitize_json_string(input_str):
            def process_string_segment(match):
                content = match.group(1)
                # unescaped backslashes that are not escape sequences
                content = re.sub(r'(?<!\\)\\(?![bfnrtu"\\/])', r'\\\\', content)
                # literal newlines inside strings
                content = re.sub(r'(?<!\\)\n', r'\\n', content)
                return f'"{content}"'

            input_str = self.clean_triple_backticks(input_str)
            input_str = re.sub(r'^\s*//.*?$|/\*.*?\*/', '', input_str, flags=re.MULTILINE | re.DOTALL)
            return re.sub(r'(?<!\\)"((?:[^"\\]|\\.)*?)"', process_string_segment, input_str, flags=re.DOTALL)

        def load_json(raw, ensure_ordered):
            err = ""
            try:
                if ensure_ordered:
                    data = commentjson.loads(self.clean_triple_backticks(raw), object_pairs_hook=OrderedDict)
                else:
                    data = commentjson.loads(self.clean_triple_backticks(raw))
                if isinstance(data, (dict, list)):
                    return data, ""
                err = f"expected an object or array, got {type(data).__name__}"
            except Exception as e:
                err = str(e)
            try:
                data = yaml.safe_load(sanitize_json_string(raw))
                if isinstance(data, (dict, list)):
                    return data, ""
                err += "\n--\nYAML parsing did not produce an object or array."
            except Exception as e:
                err += "\n--\n" + str(e)
            return None, err

        if not isinstance(json_str, str) or not json_str.strip():
            raise JsonParseError("load_fault_tolerant_json: empty input")

        data, err = load_json(json_str, ensure_ordered)
        if data is not None:
            return data
        repaired_json_str = repair_json(json_str)
        r_data, r_err = load_json(repaired_json_str, ensure_ordered)
        if r_data is not None:
            return r_data
        self.color_print(f"load_fault_tolerant_json: JSON parsing failed: {r_err}", color="red")
        raise JsonParseError(f"load_fault_tolerant_json: JSON parsing failed: {err}")
