from __future__ import annotations

from pathlib import Path

import pytest

from memcheck.ir.llvm_text import parse_module
from memcheck.ir.models import IRModule

PROJECT_ROOT = "/work/proj"

SAMPLE_IR = """\
; ModuleID = 'src/sample.cpp'
source_filename = "src/sample.cpp"
target datalayout = "e-m:e-p270:32:32-p271:32:32-p272:64:64-i64:64-i128:128-f80:128-n8:16:32:64-S128"
target triple = "x86_64-unknown-linux-gnu"

%struct.pair = type { i32, i64 }
%struct.handle = type opaque

@handler = dso_local global ptr null, align 8

; Function Attrs: noinline nounwind optnone uwtable
define dso_local i64 @add(i32 noundef %a, i64 noundef %b) #0 !dbg !10 {
entry:
  %a.addr = alloca i32, align 4
  %b.addr = alloca i64, align 8
  store i32 %a, ptr %a.addr, align 4
  store i64 %b, ptr %b.addr, align 8
  %0 = load i32, ptr %a.addr, align 4, !dbg !12
  %conv = sext i32 %0 to i64
  %1 = load i64, ptr %b.addr, align 8
  %add = add nsw i64 %conv, %1
  ret i64 %add
}

define dso_local void @_Z9fill_pairP4pairi(ptr noundef %p, i32 noundef %v) #0 !dbg !20 {
entry:
  %x = getelementptr inbounds %struct.pair, ptr %p, i32 0, i32 0
  store i32 %v, ptr %x, align 8
  %pair.val = load %struct.pair, ptr %p, align 8
  %r = call i64 @add(i32 noundef %v, i64 noundef 1)
  %fp = load ptr, ptr @handler, align 8
  call void %fp()
  br label %done

done:                                             ; preds = %entry
  ret void
}

define linkonce_odr dso_local i64 @strlen_like(ptr noundef %s) #0 !dbg !30 {
entry:
  %c = load i8, ptr %s, align 1
  %n = call i64 @add(i32 noundef 1, i64 noundef 2)
  ret i64 %n
}

define internal void @no_debug() #0 {
  store i8 0, ptr @handler, align 1
  ret void
}

declare i32 @printf(ptr noundef, ...) #1

attributes #0 = { noinline nounwind optnone uwtable }
attributes #1 = { "frame-pointer"="all" }

!llvm.dbg.cu = !{!0}
!0 = distinct !DICompileUnit(language: DW_LANG_C_plus_plus_14, file: !1, producer: "clang version 17.0.6", isOptimized: false, runtimeVersion: 0, emissionKind: FullDebug, splitDebugInlining: false, nameTableKind: None)
!1 = !DIFile(filename: "src/sample.cpp", directory: "/work/proj")
!10 = distinct !DISubprogram(name: "add", scope: !1, file: !1, line: 3, type: !11, scopeLine: 3, flags: DIFlagPrototyped, spFlags: DISPFlagDefinition, unit: !0)
!11 = !DISubroutineType(types: !{})
!12 = !DILocation(line: 4, column: 10, scope: !10)
!20 = distinct !DISubprogram(name: "fill_pair", linkageName: "_Z9fill_pairP4pairi", scope: !1, file: !1, line: 9, type: !11, scopeLine: 9, spFlags: DISPFlagDefinition, unit: !0)
!30 = distinct !DISubprogram(name: "strlen_like", scope: !31, file: !31, line: 40, type: !11, spFlags: DISPFlagDefinition, unit: !0)
!31 = !DIFile(filename: "/usr/include/string.h", directory: "/work/proj")
"""


@pytest.fixture
def sample_module() -> IRModule:
    return parse_module(SAMPLE_IR, name="sample.ll")


@pytest.fixture
def sample_ll(tmp_path: Path) -> Path:
    path = tmp_path / "sample.ll"
    path.write_text(SAMPLE_IR, encoding="utf-8")
    return path
