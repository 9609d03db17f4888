from __future__ import annotations

import unittest

from autotools.toolchains import ToolchainCompilerProvider, ToolchainDefinition, ToolchainRegistry

LINUX = "x86_64-unknown-linux-gnu"


class ToolchainCompilerProviderTests(unittest.TestCase):
    def test_native_defaults(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        c = provider.get_compiler(target=LINUX, host=LINUX, cpp=False)
        cxx = provider.get_compiler(target=LINUX, host=LINUX, cpp=True)
        self.assertEqual(c.path, "cc")
        self.assertEqual(cxx.path, "c++")
        self.assertEqual(c.flags, ["-ffunction-sections", "-fdata-sections", "-fPIC", "-m64"])
        self.assertEqual(c.environment, {})

    def test_opt_level_and_debug_flags(self) -> None:
        provider = ToolchainCompilerProvider(environ={"OPT_LEVEL": "2", "DEBUG": "true"})
        c = provider.get_compiler(target=LINUX, host=LINUX, cpp=False)
        self.assertEqual(c.cflags_env(), "-O2 -g -ffunction-sections -fdata-sections -fPIC -m64")

    def test_cross_compiler_uses_gnu_prefix(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        c = provider.get_compiler(target="aarch64-unknown-linux-gnu", host=LINUX, cpp=False)
        cxx = provider.get_compiler(target="aarch64-unknown-linux-gnu", host=LINUX, cpp=True)
        self.assertEqual(c.path, "aarch64-linux-gnu-gcc")
        self.assertEqual(cxx.path, "aarch64-linux-gnu-g++")

    def test_windows_gnu_target_has_no_pic(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        c = provider.get_compiler(target="i686-pc-windows-gnu", host=LINUX, cpp=False)
        self.assertEqual(c.path, "i686-w64-mingw32-gcc")
        self.assertNotIn("-fPIC", c.flags)
        self.assertIn("-m32", c.flags)

    def test_musl_cross_uses_wrapper(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        c = provider.get_compiler(target="x86_64-unknown-linux-musl", host=LINUX, cpp=False)
        self.assertEqual(c.path, "musl-gcc")

    def test_emscripten_exports_archiver(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        c = provider.get_compiler(target="wasm32-unknown-emscripten", host=LINUX, cpp=False)
        cxx = provider.get_compiler(target="wasm32-unknown-emscripten", host=LINUX, cpp=True)
        self.assertEqual(c.path, "emcc")
        self.assertEqual(cxx.path, "em++")
        self.assertEqual(c.environment, {"AR": "emar", "RANLIB": "emranlib"})

    def test_unknown_cross_target_falls_back_to_native(self) -> None:
        provider = ToolchainCompilerProvider(environ={})
        with self.assertLogs("autotools.toolchains", level="WARNING"):
            c = provider.get_compiler(target="sparc-unknown-none", host=LINUX, cpp=False)
        self.assertEqual(c.path, "cc")

    def test_environment_override_order(self) -> None:
        target = "aarch64-unknown-linux-gnu"
        environ = {
            "CC": "generic-cc",
            "TARGET_CC": "target-cc",
            "CC_aarch64_unknown_linux_gnu": "underscored-cc",
            f"CC_{target}": "exact-cc",
        }
        provider = ToolchainCompilerProvider(environ=environ)
        self.assertEqual(provider.get_compiler(target=target, host=LINUX, cpp=False).path, "exact-cc")

        del environ[f"CC_{target}"]
        provider = ToolchainCompilerProvider(environ=environ)
        self.assertEqual(provider.get_compiler(target=target, host=LINUX, cpp=False).path, "underscored-cc")

        del environ["CC_aarch64_unknown_linux_gnu"]
        provider = ToolchainCompilerProvider(environ=environ)
        self.assertEqual(provider.get_compiler(target=target, host=LINUX, cpp=False).path, "target-cc")

        del environ["TARGET_CC"]
        provider = ToolchainCompilerProvider(environ=environ)
        self.assertEqual(provider.get_compiler(target=target, host=LINUX, cpp=False).path, "generic-cc")

    def test_host_variables_apply_to_native_builds(self) -> None:
        provider = ToolchainCompilerProvider(environ={"HOST_CXX": "clang++", "TARGET_CXX": "nope"})
        self.assertEqual(provider.get_compiler(target=LINUX, host=LINUX, cpp=True).path, "clang++")

    def test_registered_definition_replaces_builtin(self) -> None:
        registry = ToolchainRegistry.with_builtins()
        registry.register(
            ToolchainDefinition.from_mapping(
                "native",
                {"cc": "clang", "cxx": "clang++", "flags": ["-fcolor-diagnostics"], "environment": {"AR": "llvm-ar"}},
            )
        )
        provider = ToolchainCompilerProvider(environ={}, registry=registry)
        c = provider.get_compiler(target=LINUX, host=LINUX, cpp=False)
        self.assertEqual(c.path, "clang")
        self.assertEqual(c.flags[-1], "-fcolor-diagnostics")
        self.assertEqual(c.environment, {"AR": "llvm-ar"})


class ToolchainDefinitionTests(unittest.TestCase):
    def test_requires_both_compilers(self) -> None:
        with self.assertRaises(ValueError):
            ToolchainDefinition.from_mapping("broken", {"cc": "gcc"})

    def test_rejects_unknown_keys(self) -> None:
        with self.assertRaises(ValueError):
            ToolchainDefinition.from_mapping("broken", {"cc": "gcc", "cxx": "g++", "linker": "ld"})

    def test_unknown_toolchain_lookup(self) -> None:
        with self.assertRaises(KeyError):
            ToolchainRegistry.with_builtins().get("msvc")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
