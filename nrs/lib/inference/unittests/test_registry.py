# nrs/lib/inference/unittests/test_registry.py
import unittest
from unittest.mock import patch

import nrs.lib.inference as inference
from nrs.lib.errors import AdapterIncomplete, AdapterNotFound
from nrs.lib.inference.base import FrameworkAdapter


class TestAdapterRegistry(unittest.TestCase):
    def test_builtin_frameworks(self):
        self.assertEqual(inference.available_frameworks(), ['sglang', 'vllm'])

    def test_get_adapter(self):
        adapter = inference.get_adapter('vllm')
        self.assertIsInstance(adapter, FrameworkAdapter)
        self.assertEqual(adapter.name, 'vllm')
        self.assertEqual(inference.missing_capabilities(adapter), [])

    def test_unknown_framework(self):
        with self.assertRaises(AdapterNotFound) as ctx:
            inference.get_adapter('tgi')
        self.assertIn('sglang', str(ctx.exception))

    def test_abstract_adapter_is_incomplete(self):
        with patch.dict(inference._REGISTRY, clear=False):

            @inference.register_adapter('half')
            class HalfAdapter(FrameworkAdapter):
                def health_path(self):
                    return '/health'

            with self.assertRaises(AdapterIncomplete):
                inference.get_adapter('half')

    def test_non_callable_capability_is_incomplete(self):
        with patch.dict(inference._REGISTRY, clear=False):

            @inference.register_adapter('broken')
            class BrokenAdapter(FrameworkAdapter):
                def build_launch_command(self, model_path, port, extra_args):
                    return 'serve'

                def health_path(self):
                    return '/health'

                def chat_path(self):
                    return '/v1/chat/completions'

                extra_mounts = None

            with self.assertRaises(AdapterIncomplete) as ctx:
                inference.get_adapter('broken')
            self.assertIn('extra_mounts', str(ctx.exception))

        self.assertNotIn('broken', inference.available_frameworks())


if __name__ == '__main__':
    unittest.main()
